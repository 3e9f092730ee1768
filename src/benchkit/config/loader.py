import logging
import os
from pathlib import Path
from typing import Any

import yaml

from ..errors import ConfigError

logger = logging.getLogger(__name__)


def expand_path(raw: str | os.PathLike[str], base_dir: Path) -> Path:
    """Expand `~` and environment variables, resolving relative paths against base_dir."""
    expanded = Path(os.path.expandvars(os.path.expanduser(os.fspath(raw))))
    if not expanded.is_absolute():
        expanded = base_dir / expanded
    return expanded


def read_yaml_mapping(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise ConfigError(path, "file not found")
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(path, f"failed to parse YAML: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(path, "top level must be a mapping")
    return data


def require(data: dict[str, Any], key: str, path: Path, kind: type | tuple[type, ...]) -> Any:
    if key not in data:
        raise ConfigError(path, f"missing required field '{key}'")
    value = data[key]
    if not isinstance(value, kind):
        raise ConfigError(path, f"field '{key}' has unexpected type {type(value).__name__}")
    return value


def ensure_dir(path: Path, config_path: Path) -> Path:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigError(config_path, f"failed to create directory {path}: {exc}") from exc
    logger.debug("Using directory %s", path)
    return path.resolve()
