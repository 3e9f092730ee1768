import os

__all__ = [
    "BUILD_SCRIPT",
    "CI_CPUS",
    "DATABASE_URL",
    "DB_STATEMENT_TIMEOUT_SECONDS",
    "LOG_LEVEL",
    "SNAPSHOT_HOST",
]

LOG_LEVEL = os.getenv("BENCHKIT_LOG_LEVEL", "INFO").strip().upper() or "INFO"

# Guix build entry point, relative to the bitcoin source tree
BUILD_SCRIPT = os.getenv("BENCHKIT_BUILD_SCRIPT", "") or "bench-ci/guix/guix-build"
# CPUs the build is pinned to under CI (taskset list syntax)
CI_CPUS = os.getenv("BENCHKIT_CI_CPUS", "") or "2-15"

# Per-statement timeout for result ingestion; there is no transaction-level timeout
DB_STATEMENT_TIMEOUT_SECONDS = float(os.getenv("BENCHKIT_DB_TIMEOUT_SECONDS", "") or "5.0")
# Optional full connection URL; overrides the database section of the app config
DATABASE_URL = os.getenv("BENCHKIT_DATABASE_URL", "").strip() or None

SNAPSHOT_HOST = os.getenv("BENCHKIT_SNAPSHOT_HOST", "") or "https://utxo.download/"


def is_ci() -> bool:
    """CI runs pin the build to dedicated cores with real-time priority."""
    return "CI" in os.environ
