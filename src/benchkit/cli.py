import asyncio
import logging
import sys
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path
from typing import Any

import click

from . import __version__
from .build import BuildPipeline
from .config import AppConfig, BenchmarkConfig, load_app_config, load_bench_config
from .database import check_connection, connect, init_schema
from .errors import BenchkitError
from .progress import print_download_progress
from .runner import Runner
from .snapshot import download_snapshot
from .types import Network

logger = logging.getLogger(__name__)

DEFAULT_APP_CONFIG = "config.yml"
DEFAULT_BENCH_CONFIG = "benchmark.yml"


@dataclass
class CliContext:
    """Config paths from the group options; files are only read when a command needs them."""

    app_config_path: Path
    bench_config_path: Path

    @cached_property
    def app_config(self) -> AppConfig:
        return load_app_config(self.app_config_path)

    @cached_property
    def bench_config(self) -> BenchmarkConfig:
        return load_bench_config(self.bench_config_path)

    @property
    def database_url(self) -> str:
        return self.app_config.database.connection_string()


@contextmanager
def _reported_errors() -> Iterator[None]:
    try:
        yield
    except BenchkitError as exc:
        logger.debug("Command failed", exc_info=True)
        click.echo(f"Error [{exc.error_code}]: {exc.message}", err=True)
        sys.exit(1)


@click.group(help="Build bitcoind at several commits and benchmark them with hyperfine.")
@click.version_option(__version__, prog_name="benchkit")
@click.option(
    "--app-config",
    "-a",
    type=click.Path(path_type=Path, dir_okay=False),
    default=DEFAULT_APP_CONFIG,
    show_default=True,
    help="Application config (directories and database)",
)
@click.option(
    "--bench-config",
    "-b",
    type=click.Path(path_type=Path, dir_okay=False),
    default=DEFAULT_BENCH_CONFIG,
    show_default=True,
    help="Benchmark config (source tree, commits and benchmarks)",
)
@click.pass_context
def cli(ctx: click.Context, app_config: Path, bench_config: Path) -> None:
    ctx.obj = CliContext(app_config_path=app_config, bench_config_path=bench_config)


def _build_binaries(obj: CliContext) -> None:
    pipeline = BuildPipeline.from_config(obj.app_config, obj.bench_config)
    for artifact in pipeline.build():
        click.echo(f"Built {artifact.path}")


@cli.command(help="Build bitcoind for every configured commit using guix.")
@click.pass_obj
def build(obj: CliContext) -> None:
    with _reported_errors():
        _build_binaries(obj)


def _run_options(func: Callable[..., Any]) -> Callable[..., Any]:
    func = click.option(
        "--dry-run",
        is_flag=True,
        help="Print the hyperfine commands without building or running anything",
    )(func)
    func = click.option(
        "--skip-build", is_flag=True, help="Use the binaries already in the bin directory"
    )(func)
    func = click.option(
        "--run-id", type=int, default=None, help="Run ID shared by all stored results"
    )(func)
    func = click.option(
        "--pr-number", type=int, default=None, help="Pull request number to tag results with"
    )(func)
    return func


def _make_runner(
    obj: CliContext,
    *,
    pr_number: int | None,
    run_id: int | None,
    skip_build: bool,
    dry_run: bool,
) -> Runner:
    if not (skip_build or dry_run):
        _build_binaries(obj)
    return Runner(
        obj.app_config,
        obj.bench_config,
        None if dry_run else obj.database_url,
        pull_request_number=pr_number,
        run_id=run_id,
        dry_run=dry_run,
    )


@cli.group(help="Run benchmarks (builds the configured commits first).")
def run() -> None:
    pass


@run.command("all", help="Run every benchmark in the benchmark config.")
@_run_options
@click.option(
    "--keep-going",
    is_flag=True,
    help="Continue with the remaining benchmarks when one fails",
)
@click.pass_obj
def run_all(
    obj: CliContext,
    pr_number: int | None,
    run_id: int | None,
    skip_build: bool,
    dry_run: bool,
    keep_going: bool,
) -> None:
    with _reported_errors():
        runner = _make_runner(
            obj, pr_number=pr_number, run_id=run_id, skip_build=skip_build, dry_run=dry_run
        )
        with runner:
            outcomes = asyncio.run(runner.run_all(keep_going=keep_going))
        if not dry_run:
            click.echo(f"Completed {len(outcomes)} benchmark(s) (run_id={runner.run_id})")


@run.command("single", help="Run one benchmark by name.")
@click.option("--name", "-n", required=True, help="Benchmark name from the benchmark config")
@_run_options
@click.pass_obj
def run_single(
    obj: CliContext,
    name: str,
    pr_number: int | None,
    run_id: int | None,
    skip_build: bool,
    dry_run: bool,
) -> None:
    with _reported_errors():
        runner = _make_runner(
            obj, pr_number=pr_number, run_id=run_id, skip_build=skip_build, dry_run=dry_run
        )
        with runner:
            asyncio.run(runner.run_single(name))
        if not dry_run:
            click.echo(f"Completed benchmark '{name}' (run_id={runner.run_id})")


@cli.group(help="Database administration.")
def db() -> None:
    pass


async def _init_database(conninfo: str) -> None:
    async with await connect(conninfo) as conn:
        await init_schema(conn)


@db.command("init", help="Create the result tables in an existing database.")
@click.pass_obj
def db_init(obj: CliContext) -> None:
    with _reported_errors():
        asyncio.run(_init_database(obj.database_url))
        click.echo("Database schema initialised")


@db.command("test", help="Check that the database accepts connections.")
@click.pass_obj
def db_test(obj: CliContext) -> None:
    with _reported_errors():
        asyncio.run(check_connection(obj.database_url))
        click.echo("Database connection OK")


@cli.group(help="Manage UTXO snapshots.")
def snapshot() -> None:
    pass


@snapshot.command("download", help="Download the UTXO snapshot for NETWORK.")
@click.argument(
    "network",
    type=click.Choice([n.value for n in Network], case_sensitive=False),
)
@click.pass_obj
def snapshot_download(obj: CliContext, network: str) -> None:
    with _reported_errors():
        path = download_snapshot(
            Network.parse(network),
            obj.app_config.snapshot_dir,
            progress=print_download_progress,
        )
        click.echo(f"\nSaved {path}")
