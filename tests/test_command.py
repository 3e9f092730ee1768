import shlex
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from benchkit.command import (
    CommandSynthesizer,
    add_commit_parameter_list,
    build_hyperfine_command,
    rewrite_command,
)
from benchkit.config import SingleConfig
from benchkit.errors import DuplicateParameterError, MissingCommandError, MissingExportPathError
from benchkit.hooks import HookManager
from benchkit.options import (
    BoolOption,
    NumberOption,
    ParameterListsOption,
    StringListOption,
    StringOption,
)
from benchkit.parameters import ParameterList
from benchkit.types import Network

COMMIT = "abc1230000000000000000000000000000000000"


@pytest.fixture
def synthesizer(tmp_path: Path) -> CommandSynthesizer:
    return CommandSynthesizer(
        global_options={
            "export_json": StringOption(str(tmp_path / "results.json")),
            "runs": NumberOption(10),
        },
        bin_dir=Path("/opt/bin"),
        tmp_data_dir=Path("/tmp/bench-data"),
        hook_manager=HookManager(tmp_path / "hooks"),
    )


def _bench(**hyperfine) -> SingleConfig:
    return SingleConfig(
        name="ibd",
        network=Network.SIGNET,
        hyperfine=hyperfine,
        env={"EXTRA": "1"},
    )


class TestRewriteCommand:
    def test_points_at_per_commit_binary(self) -> None:
        rewritten = rewrite_command(
            "bitcoind -stopatheight=100",
            bin_dir=Path("/opt/bin"),
            network_chain="signet",
            tmp_data_dir=Path("/data"),
        )

        assert rewritten == (
            "/opt/bin/bitcoind-{commit} -chain=signet -datadir=/data -stopatheight=100"
        )

    def test_adds_connect(self) -> None:
        rewritten = rewrite_command(
            "bitcoind",
            bin_dir=Path("/b"),
            network_chain="main",
            tmp_data_dir=Path("/d"),
            connect="10.0.0.1:8333",
        )

        assert rewritten.endswith("-connect=10.0.0.1:8333")

    def test_paths_with_spaces_stay_single_arguments(self) -> None:
        rewritten = rewrite_command(
            "bitcoind -stopatheight=1",
            bin_dir=Path("/opt/bench bin"),
            network_chain="signet",
            tmp_data_dir=Path("/tmp/bench data"),
        )

        assert shlex.split(rewritten) == [
            "/opt/bench bin/bitcoind-{commit}",
            "-chain=signet",
            "-datadir=/tmp/bench data",
            "-stopatheight=1",
        ]


class TestAddCommitParameterList:
    def test_adds_commit_list(self) -> None:
        options = add_commit_parameter_list({}, [COMMIT])

        assert options["parameter_lists"] == ParameterListsOption(
            (ParameterList("commit", [COMMIT]),)
        )

    def test_keeps_existing_commit_list(self) -> None:
        existing = ParameterListsOption((ParameterList("commit", ["pinned"]),))

        options = add_commit_parameter_list({"parameter_lists": existing}, [COMMIT])

        assert options["parameter_lists"] == existing


class TestBuildHyperfineCommand:
    def test_renders_options_in_sorted_order_with_command_last(self) -> None:
        invocation = build_hyperfine_command(
            {
                "command": StringOption("sleep 1"),
                "runs": NumberOption(2),
                "export_json": StringOption("out.json"),
                "show_output": BoolOption(True),
                "ignore_failure": BoolOption(False),
                "command_names": StringListOption(("nap",)),
            }
        )

        assert invocation.argv == [
            "hyperfine",
            "--command-name",
            "nap",
            "--export-json",
            "out.json",
            "--runs",
            "2",
            "--show-output",
            "sleep 1",
        ]
        assert invocation.export_path == Path("out.json")

    def test_wrapper_prefixes_command(self) -> None:
        invocation = build_hyperfine_command(
            {"command": StringOption("sleep 1"), "export_json": StringOption("o.json")},
            wrapper="taskset -c 1",
        )

        assert invocation.argv[-1] == "taskset -c 1 sleep 1"
        assert invocation.command == "taskset -c 1 sleep 1"

    def test_missing_command(self) -> None:
        with pytest.raises(MissingCommandError):
            build_hyperfine_command({"export_json": StringOption("o.json")}, benchmark="b")

    def test_missing_export_json_fails_before_any_process(self) -> None:
        """Should fail synthesis without starting hyperfine."""
        with patch.object(subprocess, "run") as mock_run:
            with pytest.raises(MissingExportPathError) as exc_info:
                build_hyperfine_command({"command": StringOption("bitcoind")}, benchmark="ibd")

        mock_run.assert_not_called()
        assert "export_json" in exc_info.value.message
        assert "ibd" in exc_info.value.message


class TestCommandSynthesizer:
    def test_signet_command_references_full_commit_artifact(
        self, synthesizer: CommandSynthesizer, tmp_path: Path
    ) -> None:
        invocation = synthesizer.synthesize(
            _bench(command=StringOption("bitcoind -stopatheight=1")), [COMMIT], tmp_path / "out"
        )

        assert "/opt/bin/bitcoind-{commit} -chain=signet" in invocation.command
        index = invocation.argv.index("--parameter-list")
        assert invocation.argv[index + 1 : index + 3] == ["commit", COMMIT]

        plan = synthesizer.plan(
            _bench(command=StringOption("bitcoind -stopatheight=1")), [COMMIT], tmp_path / "out"
        )
        assert plan[0][0].startswith(f"/opt/bin/bitcoind-{COMMIT} -chain=signet")

    def test_default_hooks_and_env(
        self, synthesizer: CommandSynthesizer, tmp_path: Path
    ) -> None:
        invocation = synthesizer.synthesize(
            _bench(command=StringOption("bitcoind")), [COMMIT], tmp_path / "out"
        )

        for flag in ("--setup", "--prepare", "--conclude", "--cleanup"):
            assert flag in invocation.argv
        assert invocation.env["EXTRA"] == "1"
        assert "PATH" in invocation.env

    def test_prepare_hook_loads_snapshot(
        self, synthesizer: CommandSynthesizer, tmp_path: Path
    ) -> None:
        snapshot = tmp_path / "snapshots" / "signet-160000.dat"

        invocation = synthesizer.synthesize(
            _bench(command=StringOption("bitcoind")), [COMMIT], tmp_path / "out", snapshot
        )

        prepare = invocation.argv[invocation.argv.index("--prepare") + 1]
        assert shlex.split(prepare)[1:] == [
            "/tmp/bench-data",
            "/opt/bin/bitcoind-{commit}",
            "signet",
            str(snapshot),
        ]

    def test_benchmark_options_override_global(
        self, synthesizer: CommandSynthesizer, tmp_path: Path
    ) -> None:
        invocation = synthesizer.synthesize(
            _bench(command=StringOption("bitcoind"), runs=NumberOption(1)),
            [COMMIT],
            tmp_path / "out",
        )

        index = invocation.argv.index("--runs")
        assert invocation.argv[index + 1] == "1"

    def test_plan_expands_parameter_matrix(
        self, synthesizer: CommandSynthesizer, tmp_path: Path
    ) -> None:
        bench = _bench(
            command=StringOption("bitcoind -dbcache={dbcache}"),
            parameter_lists=ParameterListsOption(
                (ParameterList("dbcache", ["450", "4000"]),)
            ),
        )

        plan = synthesizer.plan(bench, [COMMIT, "def"], tmp_path / "out")

        assert [binding for _, binding in plan] == [
            {"dbcache": "450", "commit": COMMIT},
            {"dbcache": "450", "commit": "def"},
            {"dbcache": "4000", "commit": COMMIT},
            {"dbcache": "4000", "commit": "def"},
        ]

    def test_duplicate_parameter_vars_rejected(
        self, synthesizer: CommandSynthesizer, tmp_path: Path
    ) -> None:
        bench = _bench(
            command=StringOption("bitcoind"),
            parameter_lists=ParameterListsOption(
                (ParameterList("x", ["1"]), ParameterList("x", ["2"]))
            ),
        )

        with pytest.raises(DuplicateParameterError):
            synthesizer.synthesize(bench, [COMMIT], tmp_path / "out")
