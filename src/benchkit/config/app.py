import logging
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import quote

from platformdirs import user_state_dir

from ..errors import ConfigError
from . import settings
from .loader import ensure_dir, expand_path, read_yaml_mapping

logger = logging.getLogger(__name__)

# Linux: ~/.local/state/benchkit
DEFAULT_HOME_DIR = Path(user_state_dir("benchkit", appauthor=False))


@dataclass(frozen=True)
class DatabaseConfig:
    host: str = "localhost"
    port: int = 5432
    database: str = "benchkit"
    user: str = "benchkit"
    password: str = field(default="", repr=False)

    def connection_string(self) -> str:
        if settings.DATABASE_URL:
            return settings.DATABASE_URL
        credentials = quote(self.user, safe="")
        if self.password:
            credentials += ":" + quote(self.password, safe="")
        return f"postgresql://{credentials}@{self.host}:{self.port}/{self.database}"


@dataclass(frozen=True)
class AppConfig:
    home_dir: Path
    bin_dir: Path
    snapshot_dir: Path
    database: DatabaseConfig


def _load_database(raw: object, path: Path) -> DatabaseConfig:
    if raw is None:
        return DatabaseConfig()
    if not isinstance(raw, dict):
        raise ConfigError(path, "field 'database' must be a mapping")
    unknown = set(raw) - {"host", "port", "database", "user", "password"}
    if unknown:
        raise ConfigError(path, f"unknown database field(s): {', '.join(sorted(unknown))}")
    try:
        port = int(raw.get("port", 5432))
    except (TypeError, ValueError) as exc:
        raise ConfigError(path, f"invalid database port: {raw.get('port')!r}") from exc
    return DatabaseConfig(
        host=str(raw.get("host", "localhost")),
        port=port,
        database=str(raw.get("database", "benchkit")),
        user=str(raw.get("user", "benchkit")),
        password=str(raw.get("password", "")),
    )


def load_app_config(path: Path) -> AppConfig:
    """Load the application config, creating its working directories.

    `bin_dir` and `snapshot_dir` default to sub-directories of `home_dir`,
    which itself defaults to the platform state directory.
    """
    path = Path(path)
    data = read_yaml_mapping(path)
    config_dir = path.resolve().parent

    home_raw = data.get("home_dir")
    home_dir = expand_path(home_raw, config_dir) if home_raw else DEFAULT_HOME_DIR
    home_dir = ensure_dir(home_dir, path)

    bin_dir = ensure_dir(expand_path(data.get("bin_dir", home_dir / "binaries"), config_dir), path)
    snapshot_dir = ensure_dir(
        expand_path(data.get("snapshot_dir", home_dir / "snapshots"), config_dir), path
    )
    config = AppConfig(
        home_dir=home_dir,
        bin_dir=bin_dir,
        snapshot_dir=snapshot_dir,
        database=_load_database(data.get("database"), path),
    )
    logger.debug("Using app configuration %s", config)
    return config
