import logging
import os
import shlex
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from .build import BINARY_NAME
from .config import SingleConfig
from .errors import MissingCommandError, MissingExportPathError
from .hooks import HookManager
from .options import (
    COMMAND_KEY,
    EXPORT_JSON_KEY,
    PARAMETER_LISTS_KEY,
    OptionMap,
    OptionValue,
    ParameterListsOption,
    StringOption,
    merge_options,
    render_option,
)
from .parameters import (
    COMMIT_VAR,
    ParameterBinding,
    ParameterList,
    ParameterMatrix,
    check_unique_vars,
)

logger = logging.getLogger(__name__)

HYPERFINE = "hyperfine"


@dataclass(frozen=True)
class HyperfineInvocation:
    argv: list[str]
    command: str
    export_path: Path
    env: dict[str, str] = field(default_factory=dict)

    def display(self) -> str:
        return shlex.join(self.argv)


def binary_template(bin_dir: Path) -> str:
    """Per-commit bitcoind path with the `{commit}` placeholder left for hyperfine."""
    return f"{bin_dir}/{BINARY_NAME}-{{{COMMIT_VAR}}}"


def rewrite_command(
    command: str,
    *,
    bin_dir: Path,
    network_chain: str,
    tmp_data_dir: Path,
    connect: str | None = None,
) -> str:
    """Point every `bitcoind` token at the per-commit binary in bin_dir."""
    binary = f"{shlex.quote(str(bin_dir))}/{BINARY_NAME}-{{{COMMIT_VAR}}}"
    invocation = f"{binary} -chain={network_chain} -datadir={shlex.quote(str(tmp_data_dir))}"
    if connect:
        invocation += f" -connect={shlex.quote(connect)}"
    return command.replace(BINARY_NAME, invocation)


def add_commit_parameter_list(
    options: Mapping[str, OptionValue], commits: Sequence[str]
) -> OptionMap:
    """Add a `commit` parameter list unless one is already declared."""
    merged: OptionMap = dict(options)
    existing = merged.get(PARAMETER_LISTS_KEY)
    if not isinstance(existing, ParameterListsOption):
        existing = ParameterListsOption(lists=())
    if not existing.has_var(COMMIT_VAR):
        existing = existing.with_list(ParameterList(var=COMMIT_VAR, values=list(commits)))
    merged[PARAMETER_LISTS_KEY] = existing
    return merged


def parameter_lists(options: Mapping[str, OptionValue]) -> list[ParameterList]:
    value = options.get(PARAMETER_LISTS_KEY)
    if isinstance(value, ParameterListsOption):
        return list(value.lists)
    return []


def build_hyperfine_command(
    options: Mapping[str, OptionValue],
    *,
    wrapper: str | None = None,
    benchmark: str | None = None,
    env: Mapping[str, str] | None = None,
) -> HyperfineInvocation:
    """Render merged options into a hyperfine argv.

    Options are emitted in sorted key order and the (optionally wrapped)
    command string is the final positional argument.

    Raises:
        MissingCommandError: If there is no string `command` option.
        MissingExportPathError: If there is no string `export_json` option.
    """
    command = options.get(COMMAND_KEY)
    if not isinstance(command, StringOption):
        raise MissingCommandError(benchmark)
    export_json = options.get(EXPORT_JSON_KEY)
    if not isinstance(export_json, StringOption):
        raise MissingExportPathError(benchmark)

    command_str = f"{wrapper} {command.value}" if wrapper else command.value

    argv = [HYPERFINE]
    for key in sorted(options):
        if key == COMMAND_KEY:
            continue
        argv.extend(render_option(key, options[key]))
    argv.append(command_str)

    return HyperfineInvocation(
        argv=argv,
        command=command_str,
        export_path=Path(export_json.value),
        env=dict(env or {}),
    )


class CommandSynthesizer:
    """Turn a benchmark definition into a ready-to-run hyperfine invocation."""

    def __init__(
        self,
        *,
        global_options: Mapping[str, OptionValue],
        bin_dir: Path,
        tmp_data_dir: Path,
        wrapper: str | None = None,
        hook_manager: HookManager | None = None,
    ):
        self.global_options = dict(global_options)
        self.bin_dir = bin_dir
        self.tmp_data_dir = tmp_data_dir
        self.wrapper = wrapper
        self.hook_manager = hook_manager or HookManager()

    def prepare_options(
        self,
        bench: SingleConfig,
        commits: Sequence[str],
        out_dir: Path,
        snapshot: Path | None = None,
    ) -> OptionMap:
        merged = merge_options(self.global_options, bench.hyperfine)
        merged = self.hook_manager.add_script_hooks(
            merged,
            bench.network,
            self.tmp_data_dir,
            out_dir,
            bitcoind=binary_template(self.bin_dir),
            snapshot=snapshot,
            connect=bench.connect,
        )
        merged = add_commit_parameter_list(merged, commits)
        check_unique_vars(parameter_lists(merged))

        command = merged.get(COMMAND_KEY)
        if isinstance(command, StringOption):
            merged[COMMAND_KEY] = StringOption(
                rewrite_command(
                    command.value,
                    bin_dir=self.bin_dir,
                    network_chain=bench.network.chain_name,
                    tmp_data_dir=self.tmp_data_dir,
                    connect=bench.connect,
                )
            )
        return merged

    def synthesize(
        self,
        bench: SingleConfig,
        commits: Sequence[str],
        out_dir: Path,
        snapshot: Path | None = None,
    ) -> HyperfineInvocation:
        options = self.prepare_options(bench, commits, out_dir, snapshot)
        env = {**os.environ, **bench.env}
        invocation = build_hyperfine_command(
            options, wrapper=self.wrapper, benchmark=bench.name, env=env
        )
        logger.debug("Built hyperfine command: %s", invocation.display())
        return invocation

    def plan(
        self,
        bench: SingleConfig,
        commits: Sequence[str],
        out_dir: Path,
        snapshot: Path | None = None,
    ) -> list[tuple[str, ParameterBinding]]:
        """Every concrete command hyperfine will time, with its parameter binding."""
        options = self.prepare_options(bench, commits, out_dir, snapshot)
        command = options.get(COMMAND_KEY)
        if not isinstance(command, StringOption):
            raise MissingCommandError(bench.name)
        template = f"{self.wrapper} {command.value}" if self.wrapper else command.value
        return ParameterMatrix(parameter_lists(options)).generate_commands(template)
