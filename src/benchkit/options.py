"""Typed hyperfine option values.

Benchmark configs carry hyperfine options as loosely typed YAML. They are
parsed once into a closed set of option kinds so that rendering them into
command-line flags can dispatch on the kind instead of probing raw values.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .parameters import ParameterList, parse_parameter_lists

logger = logging.getLogger(__name__)

COMMAND_KEY = "command"
EXPORT_JSON_KEY = "export_json"
COMMAND_NAMES_KEY = "command_names"
PARAMETER_LISTS_KEY = "parameter_lists"


@dataclass(frozen=True)
class StringOption:
    value: str


@dataclass(frozen=True)
class NumberOption:
    value: int | float

    def literal(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class BoolOption:
    value: bool


@dataclass(frozen=True)
class StringListOption:
    values: tuple[str, ...]


@dataclass(frozen=True)
class ParameterListsOption:
    lists: tuple[ParameterList, ...]

    def with_list(self, param_list: ParameterList) -> "ParameterListsOption":
        return ParameterListsOption(lists=(*self.lists, param_list))

    def has_var(self, var: str) -> bool:
        return any(param_list.var == var for param_list in self.lists)


OptionValue = StringOption | NumberOption | BoolOption | StringListOption | ParameterListsOption
OptionMap = dict[str, OptionValue]


def parse_option_value(key: str, raw: Any) -> OptionValue | None:
    """Convert one raw config value into its option kind.

    Returns None for values hyperfine has no flag shape for (mappings, null).

    Raises:
        MalformedParameterListError: If `key` is `parameter_lists` and an
            entry is malformed.
    """
    if key == PARAMETER_LISTS_KEY:
        return ParameterListsOption(lists=tuple(parse_parameter_lists(raw)))
    # bool is a subclass of int, so it has to be matched first
    if isinstance(raw, bool):
        return BoolOption(raw)
    if isinstance(raw, (int, float)):
        return NumberOption(raw)
    if isinstance(raw, str):
        return StringOption(raw)
    if isinstance(raw, list):
        return StringListOption(tuple(item for item in raw if isinstance(item, str)))
    return None


def parse_options(raw: Mapping[str, Any] | None) -> OptionMap:
    options: OptionMap = {}
    for key, value in (raw or {}).items():
        parsed = parse_option_value(str(key), value)
        if parsed is None:
            logger.debug("Ignoring hyperfine option %s with unsupported value %r", key, value)
            continue
        options[str(key)] = parsed
    return options


def merge_options(*sources: Mapping[str, OptionValue] | None) -> OptionMap:
    """Merge option maps left to right; later sources win on key collisions."""
    merged: OptionMap = {}
    for source in sources:
        if source:
            merged.update(source)
    return merged


def render_flag(key: str) -> str:
    return "--" + key.replace("_", "-")


def render_option(key: str, option: OptionValue) -> list[str]:
    """Render a single option into hyperfine argv fragments."""
    if isinstance(option, StringOption):
        return [render_flag(key), option.value]
    if isinstance(option, NumberOption):
        return [render_flag(key), option.literal()]
    if isinstance(option, BoolOption):
        return [render_flag(key)] if option.value else []
    if isinstance(option, StringListOption):
        if key != COMMAND_NAMES_KEY:
            return []
        args: list[str] = []
        for name in option.values:
            args.extend(["--command-name", name])
        return args
    if isinstance(option, ParameterListsOption):
        args = []
        for param_list in option.lists:
            args.extend(["--parameter-list", param_list.var, ",".join(param_list.values)])
        return args
    return []
