import asyncio
import logging
from collections.abc import Awaitable, Callable
from importlib import resources
from pathlib import Path
from typing import Any, TypeVar

import psycopg

from ..config import settings
from ..errors import PersistenceError
from .results import HyperfineResult, ResultsDocument, load_results

logger = logging.getLogger(__name__)

T = TypeVar("T")

INSERT_BENCHMARK = (
    "INSERT INTO benchmarks (name, command, pull_request_number, run_id) "
    "VALUES (%s, %s, %s, %s) RETURNING id"
)
INSERT_BENCHMARK_RUN = (
    "INSERT INTO benchmark_runs "
    "(benchmark_id, mean, stddev, median, user_time, system_time, min_time, max_time) "
    "VALUES (%s, %s, %s, %s, %s, %s, %s, %s) RETURNING id"
)
INSERT_MEASUREMENT = (
    "INSERT INTO measurements "
    "(benchmark_run_id, execution_time, exit_code, measurement_order) "
    "VALUES (%s, %s, %s, %s)"
)


def schema_sql() -> str:
    return resources.files(__package__).joinpath("schema.sql").read_text(encoding="utf-8")


async def _bounded(awaitable: Awaitable[T], what: str) -> T:
    """Await one database round trip under the per-statement timeout."""
    timeout = settings.DB_STATEMENT_TIMEOUT_SECONDS
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise PersistenceError(f"Timeout {what} after {timeout:g}s") from exc
    except psycopg.Error as exc:
        raise PersistenceError(f"Failed {what}: {exc}") from exc


async def connect(conninfo: str) -> psycopg.AsyncConnection[Any]:
    """Open an autocommit connection; every statement is durable on its own."""
    return await _bounded(
        psycopg.AsyncConnection.connect(conninfo, autocommit=True),
        "connecting to database",
    )


async def init_schema(conn: Any) -> None:
    await _bounded(conn.execute(schema_sql()), "initialising schema")
    logger.info("Database schema is up to date")


async def check_connection(conninfo: str) -> None:
    """Raise PersistenceError unless the database answers a trivial query."""
    async with await connect(conninfo) as conn:
        await _bounded(conn.execute("SELECT 1"), "executing test query")


async def _insert_returning_id(conn: Any, query: str, params: tuple[Any, ...], what: str) -> int:
    async def round_trip() -> Any:
        cursor = await conn.execute(query, params)
        return await cursor.fetchone()

    row = await _bounded(round_trip(), what)
    if not row:
        raise PersistenceError(f"Failed {what}: no id returned")
    return int(row[0])


async def _store_result(
    conn: Any,
    bench_name: str,
    result: HyperfineResult,
    pull_request_number: int | None,
    run_id: int | None,
) -> None:
    benchmark_id = await _insert_returning_id(
        conn,
        INSERT_BENCHMARK,
        (bench_name, result.command, pull_request_number, run_id),
        "inserting benchmark",
    )
    benchmark_run_id = await _insert_returning_id(
        conn,
        INSERT_BENCHMARK_RUN,
        (
            benchmark_id,
            result.mean,
            result.stddev,
            result.median,
            result.user,
            result.system,
            result.min,
            result.max,
        ),
        "inserting benchmark run",
    )
    for order, execution_time, exit_code in result.measurements():
        await _bounded(
            conn.execute(
                INSERT_MEASUREMENT, (benchmark_run_id, execution_time, exit_code, order)
            ),
            "inserting measurement",
        )


async def store_results(
    conn: Any,
    bench_name: str,
    document: ResultsDocument,
    pull_request_number: int | None = None,
    run_id: int | None = None,
) -> None:
    """Persist every result of a hyperfine export.

    Statements are not wrapped in a transaction: rows written before a
    failure stay in the database.

    Raises:
        PersistenceError: On a database error or a statement timeout.
    """
    for result in document.results:
        await _store_result(conn, bench_name, result, pull_request_number, run_id)
    logger.info(
        "Stored %d result(s) with %d measurement(s) for benchmark '%s' (run_id=%s)",
        len(document.results),
        document.measurement_count,
        bench_name,
        run_id,
    )


Connector = Callable[[str], Awaitable[Any]]


class ResultIngester:
    """Load a hyperfine export, persist it, then delete the file."""

    def __init__(self, conninfo: str, *, connector: Connector | None = None):
        self.conninfo = conninfo
        self._connect = connector or connect

    async def ingest(
        self,
        path: Path | str,
        bench_name: str,
        pull_request_number: int | None = None,
        run_id: int | None = None,
    ) -> ResultsDocument:
        path = Path(path)
        document = load_results(path, bench_name)

        async with await self._connect(self.conninfo) as conn:
            await store_results(conn, bench_name, document, pull_request_number, run_id)

        try:
            path.unlink()
        except OSError as exc:
            logger.error("Failed to remove results file %s: %s", path, exc)
        return document
