"""Parameter spaces for benchmark command templates.

A benchmark declares named axes (`ParameterList`); the matrix is the cartesian
product of all axes, and every point in it (`ParameterBinding`) produces one
concrete command line.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from .errors import DuplicateParameterError, MalformedParameterListError

ParameterBinding = dict[str, str]

# Variable reserved for the revision axis; it is already part of the results layout
COMMIT_VAR = "commit"
DEFAULT_DIRNAME = "default"


@dataclass
class ParameterList:
    """One axis of the parameter space."""

    var: str
    values: list[str] = field(default_factory=list)


def check_unique_vars(lists: Iterable[ParameterList]) -> None:
    seen: set[str] = set()
    for param_list in lists:
        if param_list.var in seen:
            raise DuplicateParameterError(param_list.var)
        seen.add(param_list.var)


def expand(lists: Sequence[ParameterList]) -> list[ParameterBinding]:
    """Expand parameter lists into every combination of their values.

    The last declared list varies fastest. With no lists the result is a
    single empty binding so that a template without placeholders still yields
    one command.

    Raises:
        DuplicateParameterError: If two lists declare the same variable.
    """
    check_unique_vars(lists)

    bindings: list[ParameterBinding] = [{}]
    for param_list in lists:
        bindings = [
            {**binding, param_list.var: value}
            for binding in bindings
            for value in param_list.values
        ]
    return bindings


def render(template: str, binding: ParameterBinding) -> str:
    """Substitute `{var}` placeholders; unknown placeholders are left as-is."""
    command = template
    for var, value in binding.items():
        command = command.replace(f"{{{var}}}", value)
    return command


def directory_name(binding: ParameterBinding) -> str:
    pairs = sorted(f"{key}-{value}" for key, value in binding.items() if key != COMMIT_VAR)
    if not pairs:
        return DEFAULT_DIRNAME
    return "_".join(pairs)


class ParameterMatrix:
    def __init__(self, lists: Sequence[ParameterList]):
        self.lists = list(lists)
        self.combinations = expand(self.lists)

    def __len__(self) -> int:
        return len(self.combinations)

    def generate_commands(self, template: str) -> list[tuple[str, ParameterBinding]]:
        return [(render(template, binding), dict(binding)) for binding in self.combinations]


def parse_parameter_list(entry: Any) -> ParameterList:
    """Build a ParameterList from a raw config entry.

    Accepts `values` as a list of strings or as a comma-separated string.

    Raises:
        MalformedParameterListError: If `var` or `values` is missing or a
            value is not a string.
    """
    if not isinstance(entry, dict):
        raise MalformedParameterListError("entry must be a mapping", entry)

    var = entry.get("var")
    if not isinstance(var, str) or not var:
        raise MalformedParameterListError("missing or invalid 'var'", entry)

    raw_values = entry.get("values")
    if isinstance(raw_values, str):
        values = [v.strip() for v in raw_values.split(",") if v.strip()]
    elif isinstance(raw_values, list):
        values = []
        for value in raw_values:
            if not isinstance(value, str):
                raise MalformedParameterListError(f"invalid value {value!r} for '{var}'", entry)
            values.append(value)
    else:
        raise MalformedParameterListError(f"missing or invalid 'values' for '{var}'", entry)

    return ParameterList(var=var, values=values)


def parse_parameter_lists(raw: Any) -> list[ParameterList]:
    if not isinstance(raw, list):
        raise MalformedParameterListError("parameter_lists must be a list", raw)
    return [parse_parameter_list(entry) for entry in raw]
