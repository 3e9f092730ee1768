import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..errors import ConfigError
from ..options import OptionMap, parse_options
from ..types import Network
from .loader import ensure_dir, expand_path, read_yaml_mapping, require

logger = logging.getLogger(__name__)

DEFAULT_HOST = "x86_64-linux-gnu"


@dataclass(frozen=True)
class GlobalConfig:
    source: Path
    commits: list[str]
    tmp_data_dir: Path
    host: str = DEFAULT_HOST
    wrapper: str | None = None
    hyperfine: OptionMap = field(default_factory=dict)


@dataclass(frozen=True)
class SingleConfig:
    name: str
    network: Network
    hyperfine: OptionMap
    env: dict[str, str] = field(default_factory=dict)
    connect: str | None = None


@dataclass(frozen=True)
class BenchmarkConfig:
    global_config: GlobalConfig
    benchmarks: list[SingleConfig]

    def find(self, name: str) -> SingleConfig | None:
        for bench in self.benchmarks:
            if bench.name == name:
                return bench
        return None


def _parse_hyperfine(raw: Any, where: str, path: Path) -> OptionMap:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(path, f"'hyperfine' in {where} must be a mapping")
    return parse_options(raw)


def _load_global(data: dict[str, Any], path: Path) -> GlobalConfig:
    config_dir = path.resolve().parent

    source = expand_path(require(data, "source", path, str), config_dir)
    if not source.is_dir():
        raise ConfigError(path, f"source directory does not exist: {source}")

    commits = require(data, "commits", path, list)
    if not commits or not all(isinstance(c, (str, int)) for c in commits):
        raise ConfigError(path, "'commits' must be a non-empty list of revisions")

    tmp_data_dir = ensure_dir(
        expand_path(require(data, "tmp_data_dir", path, str), config_dir), path
    )

    wrapper = data.get("wrapper")
    if wrapper is not None and not isinstance(wrapper, str):
        raise ConfigError(path, "'wrapper' must be a string")

    return GlobalConfig(
        source=source.resolve(),
        # YAML turns all-digit short hashes into ints
        commits=[str(c) for c in commits],
        tmp_data_dir=tmp_data_dir,
        host=str(data.get("host") or DEFAULT_HOST),
        wrapper=wrapper or None,
        hyperfine=_parse_hyperfine(data.get("hyperfine"), "global", path),
    )


def _load_benchmark(data: Any, path: Path) -> SingleConfig:
    if not isinstance(data, dict):
        raise ConfigError(path, "each benchmark must be a mapping")
    name = require(data, "name", path, str)

    try:
        network = Network.parse(require(data, "network", path, str))
    except ValueError as exc:
        raise ConfigError(path, f"benchmark '{name}': {exc}") from exc

    env = data.get("env") or {}
    if not isinstance(env, dict):
        raise ConfigError(path, f"benchmark '{name}': 'env' must be a mapping")

    connect = data.get("connect")
    return SingleConfig(
        name=name,
        network=network,
        hyperfine=_parse_hyperfine(data.get("hyperfine"), f"benchmark '{name}'", path),
        env={str(k): str(v) for k, v in env.items()},
        connect=str(connect) if connect else None,
    )


def load_bench_config(path: Path) -> BenchmarkConfig:
    """Load a benchmark definition file.

    Relative `source` and `tmp_data_dir` paths resolve against the directory
    holding the config file; `tmp_data_dir` is created if missing.
    """
    path = Path(path)
    data = read_yaml_mapping(path)

    global_config = _load_global(require(data, "global", path, dict), path)
    benchmarks = [_load_benchmark(item, path) for item in require(data, "benchmarks", path, list)]

    seen: set[str] = set()
    for bench in benchmarks:
        if bench.name in seen:
            raise ConfigError(path, f"duplicate benchmark name '{bench.name}'")
        seen.add(bench.name)

    config = BenchmarkConfig(global_config=global_config, benchmarks=benchmarks)
    logger.debug("Using benchmark configuration %s", config)
    return config
