"""Parsing of hyperfine `--export-json` documents."""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..errors import MissingResultFileError, ResultParseError

logger = logging.getLogger(__name__)

_REQUIRED_FLOATS = ("mean", "median", "user", "system", "min", "max")


@dataclass(frozen=True)
class HyperfineResult:
    """Summary statistics and raw samples for one timed command."""

    command: str
    mean: float
    stddev: float | None
    median: float
    user: float
    system: float
    min: float
    max: float
    times: list[float] = field(default_factory=list)
    # None where hyperfine could not observe an exit code (killed by a signal)
    exit_codes: list[int | None] = field(default_factory=list)
    parameters: dict[str, str] = field(default_factory=dict)

    def measurements(self) -> list[tuple[int, float, int | None]]:
        """(order, execution time, exit code) for every sample, in run order."""
        return [
            (order, time, code)
            for order, (time, code) in enumerate(zip(self.times, self.exit_codes, strict=True))
        ]


@dataclass(frozen=True)
class ResultsDocument:
    results: list[HyperfineResult]

    @property
    def measurement_count(self) -> int:
        return sum(len(result.times) for result in self.results)


def _as_float(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{key}' must be a number, got {value!r}")
    return float(value)


def _parse_result(raw: Any, index: int) -> HyperfineResult:
    if not isinstance(raw, dict):
        raise ValueError(f"results[{index}] must be an object")

    command = raw.get("command")
    if not isinstance(command, str):
        raise ValueError(f"results[{index}].command must be a string")

    stats = {key: _as_float(raw.get(key), f"results[{index}].{key}") for key in _REQUIRED_FLOATS}
    stddev = raw.get("stddev")
    if stddev is not None:
        stddev = _as_float(stddev, f"results[{index}].stddev")

    for key in ("times", "exit_codes"):
        if key not in raw:
            raise ValueError(f"results[{index}].{key} is missing")
    times = raw["times"]
    exit_codes = raw["exit_codes"]
    if not isinstance(times, list) or not isinstance(exit_codes, list):
        raise ValueError(f"results[{index}] times and exit_codes must be lists")
    if len(times) != len(exit_codes):
        raise ValueError(
            f"results[{index}] has {len(times)} times but {len(exit_codes)} exit codes"
        )
    for code in exit_codes:
        if code is not None and (isinstance(code, bool) or not isinstance(code, int)):
            raise ValueError(f"results[{index}] exit code {code!r} is not an integer")

    parameters = raw.get("parameters") or {}
    if not isinstance(parameters, dict):
        parameters = {}

    return HyperfineResult(
        command=command,
        stddev=stddev,
        times=[_as_float(t, f"results[{index}].times") for t in times],
        exit_codes=list(exit_codes),
        parameters={str(k): str(v) for k, v in parameters.items()},
        **stats,
    )


def parse_results(text: str, source: Path | str = "<string>") -> ResultsDocument:
    """Parse the body of a hyperfine JSON export.

    Raises:
        ResultParseError: If the text is not JSON or lacks the expected shape.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ResultParseError(source, f"invalid JSON: {exc}") from exc

    if not isinstance(data, dict) or not isinstance(data.get("results"), list):
        raise ResultParseError(source, "expected an object with a 'results' list")

    try:
        results = [_parse_result(raw, i) for i, raw in enumerate(data["results"])]
    except ValueError as exc:
        raise ResultParseError(source, str(exc)) from exc
    return ResultsDocument(results=results)


def load_results(path: Path | str, benchmark: str | None = None) -> ResultsDocument:
    path = Path(path)
    if not path.is_file():
        raise MissingResultFileError(path, benchmark)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ResultParseError(path, f"failed to read file: {exc}") from exc

    document = parse_results(text, path)
    logger.debug(
        "Loaded %d result(s) with %d measurement(s) from %s",
        len(document.results),
        document.measurement_count,
        path,
    )
    return document
