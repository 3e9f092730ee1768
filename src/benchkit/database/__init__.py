"""PostgreSQL persistence of hyperfine results."""

from .results import HyperfineResult, ResultsDocument, load_results, parse_results
from .store import (
    ResultIngester,
    check_connection,
    connect,
    init_schema,
    schema_sql,
    store_results,
)

__all__ = [
    "HyperfineResult",
    "ResultIngester",
    "ResultsDocument",
    "check_connection",
    "connect",
    "init_schema",
    "load_results",
    "parse_results",
    "schema_sql",
    "store_results",
]
