"""Configuration module for benchkit."""

from .app import AppConfig, DatabaseConfig, load_app_config
from .bench import BenchmarkConfig, GlobalConfig, SingleConfig, load_bench_config
from .settings import (
    BUILD_SCRIPT,
    CI_CPUS,
    DATABASE_URL,
    DB_STATEMENT_TIMEOUT_SECONDS,
    LOG_LEVEL,
    SNAPSHOT_HOST,
)

__all__ = [
    # Settings
    "BUILD_SCRIPT",
    "CI_CPUS",
    "DATABASE_URL",
    "DB_STATEMENT_TIMEOUT_SECONDS",
    "LOG_LEVEL",
    "SNAPSHOT_HOST",
    # Config files
    "AppConfig",
    "BenchmarkConfig",
    "DatabaseConfig",
    "GlobalConfig",
    "SingleConfig",
    "load_app_config",
    "load_bench_config",
]
