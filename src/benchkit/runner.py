import logging
import random
import subprocess  # nosec B404
import tempfile
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import click

from .command import CommandSynthesizer, HyperfineInvocation
from .config import AppConfig, BenchmarkConfig, SingleConfig
from .database import ResultIngester, ResultsDocument
from .errors import (
    BenchkitError,
    BenchmarkBatchError,
    BenchmarkNotFoundError,
    HyperfineError,
    MissingResultFileError,
)
from .hooks import HookManager
from .parameters import directory_name
from .snapshot import check_snapshot
from .workspace import resolve_commits

logger = logging.getLogger(__name__)

RUN_ID_MIN = 100_000_000
RUN_ID_MAX = 999_999_999

RunIdProvider = Callable[[], int]


@dataclass(frozen=True)
class PreparedBenchmark:
    bench: SingleConfig
    commits: list[str]
    out_dir: Path
    invocation: HyperfineInvocation
    snapshot: Path | None = None


def random_run_id() -> int:
    """Uniform draw from [RUN_ID_MIN, RUN_ID_MAX)."""
    return random.randrange(RUN_ID_MIN, RUN_ID_MAX)  # nosec B311


class Runner:
    """Run configured benchmarks through hyperfine and ingest their results.

    Every result persisted by one Runner shares the same run id, which is
    either supplied by the caller or drawn once from `run_id_provider`.
    """

    def __init__(
        self,
        app_config: AppConfig,
        bench_config: BenchmarkConfig,
        database_url: str | None = None,
        *,
        pull_request_number: int | None = None,
        run_id: int | None = None,
        run_id_provider: RunIdProvider = random_run_id,
        ingester: ResultIngester | None = None,
        hook_manager: HookManager | None = None,
        dry_run: bool = False,
    ):
        self.app_config = app_config
        self.bench_config = bench_config
        self.pull_request_number = pull_request_number
        self.dry_run = dry_run

        if run_id is None:
            run_id = run_id_provider()
            logger.warning("No run_id specified. Generated random run_id: %s", run_id)
        self.run_id = run_id

        if ingester is None and database_url:
            ingester = ResultIngester(database_url)
        self.ingester = ingester

        self._owned_hooks = hook_manager is None
        if hook_manager is None:
            hook_manager = HookManager()
        self.hook_manager = hook_manager

        global_config = bench_config.global_config
        self.synthesizer = CommandSynthesizer(
            global_options=global_config.hyperfine,
            bin_dir=app_config.bin_dir,
            tmp_data_dir=global_config.tmp_data_dir,
            wrapper=global_config.wrapper,
            hook_manager=hook_manager,
        )

    def close(self) -> None:
        if self._owned_hooks:
            self.hook_manager.close()

    def __enter__(self) -> "Runner":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    async def run_all(self, *, keep_going: bool = False) -> dict[str, ResultsDocument | None]:
        """Run every benchmark in config order.

        By default the first failure aborts the batch. With keep_going the
        remaining benchmarks still run and BenchmarkBatchError is raised at
        the end naming every benchmark that failed.
        """
        outcomes: dict[str, ResultsDocument | None] = {}
        failures: dict[str, BenchkitError] = {}
        for bench in self.bench_config.benchmarks:
            try:
                outcomes[bench.name] = await self.run_benchmark(bench)
            except BenchkitError as exc:
                if not keep_going:
                    raise
                logger.error("Benchmark '%s' failed: %s", bench.name, exc.message)
                failures[bench.name] = exc

        if failures:
            raise BenchmarkBatchError(failures)
        return outcomes

    async def run_single(self, name: str) -> ResultsDocument | None:
        bench = self.bench_config.find(name)
        if bench is None:
            raise BenchmarkNotFoundError(name)
        return await self.run_benchmark(bench)

    def prepare(self, bench: SingleConfig) -> PreparedBenchmark:
        """Check prerequisites and synthesize the hyperfine invocation for bench."""
        snapshot = check_snapshot(bench.network, self.app_config.snapshot_dir)

        global_config = self.bench_config.global_config
        revisions = resolve_commits(global_config.source, global_config.commits)
        commits = [revision.commit for revision in revisions]

        if self.dry_run:
            # never created; only shown in the plan
            out_dir = Path(tempfile.gettempdir()) / f"benchkit-{bench.name}-dry-run"
        else:
            out_dir = Path(tempfile.mkdtemp(prefix=f"benchkit-{bench.name}-"))
            logger.info("Collecting debug logs for '%s' in %s", bench.name, out_dir)
        invocation = self.synthesizer.synthesize(bench, commits, out_dir, snapshot)
        return PreparedBenchmark(bench, commits, out_dir, invocation, snapshot)

    async def run_benchmark(self, bench: SingleConfig) -> ResultsDocument | None:
        logger.info("Running benchmark: %s (network=%s)", bench.name, bench.network.value)
        prepared = self.prepare(bench)
        invocation = prepared.invocation

        if self.dry_run:
            self._print_plan(prepared)
            return None

        self._run_hyperfine(bench, invocation)

        if not invocation.export_path.exists():
            raise MissingResultFileError(invocation.export_path, bench.name)
        if self.ingester is None:
            logger.warning(
                "No database configured; leaving results for '%s' at %s",
                bench.name,
                invocation.export_path,
            )
            return None
        return await self.ingester.ingest(
            invocation.export_path, bench.name, self.pull_request_number, self.run_id
        )

    def _run_hyperfine(self, bench: SingleConfig, invocation: HyperfineInvocation) -> None:
        logger.debug("Running hyperfine command: %s", invocation.display())
        try:
            completed = subprocess.run(  # nosec B603
                invocation.argv,
                env=invocation.env,
                check=False,
            )
        except OSError as exc:
            raise HyperfineError(bench.name, f"failed to execute: {exc}") from exc
        if completed.returncode != 0:
            raise HyperfineError(bench.name, f"exit code {completed.returncode}")

    def _print_plan(self, prepared: PreparedBenchmark) -> None:
        bench = prepared.bench
        invocation = prepared.invocation
        click.echo(f"\n[Dry Run] {bench.name} ({bench.network.value})")
        click.echo(f"  {invocation.display()}")
        click.echo(f"  export: {invocation.export_path}")
        if prepared.snapshot is not None:
            click.echo(f"  snapshot: {prepared.snapshot}")
        plan = self.synthesizer.plan(
            bench, prepared.commits, prepared.out_dir, prepared.snapshot
        )
        for command, binding in plan:
            label = f"{binding.get('commit', '?')[:12]}/{directory_name(binding)}"
            click.echo(f"  - [{label}] {command}")
