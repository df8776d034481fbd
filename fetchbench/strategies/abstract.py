"""
Abstract strategy interfaces and result contracts for fetchbench.

A fetch strategy turns a `FetchRequest` into database round-trips and result
items. Concrete strategies subclass `AbstractFetchStrategy`, describe their
base query in `select`, and shape rows into items in `build_item` (or
override `iterate` entirely, as chunked iteration does). The executor turns
what they yield into a `StrategyResult` for orchestration and reporting.
"""

from __future__ import annotations

import abc
from typing import Any, Dict, Iterator, Optional, Protocol, Tuple, TypedDict, runtime_checkable

from fetchbench.domain.errors import RecordNotFoundError
from fetchbench.domain.lazy import Refetch
from fetchbench.domain.query import FetchRequest, SelectStatement
from fetchbench.domain.schema import TableSchema, quote_ident
from fetchbench.infrastructure.tracking import REFETCH, TrackedConnection
from fetchbench.utils.logging import get_logger

log = get_logger(__name__)


class StrategyResult(TypedDict, total=False):
    """
    Metrics contract for one strategy run.

    Fields are optional so failed runs can report just `error`; the
    orchestrator and reporter tolerate missing values.
    """

    strategy: str
    mode: str
    rows: int
    value: Any
    duration_seconds: float
    throughput_rows_per_sec: float
    round_trips: int
    secondary_round_trips: int
    round_trips_by_kind: Dict[str, int]
    peak_rows_in_memory: Optional[int]
    peak_rss_bytes: Optional[int]
    cpu_percent: Optional[float]
    error: Optional[str]
    notes: Optional[str]
    extra: Dict[str, Any]


@runtime_checkable
class FetchStrategy(Protocol):
    """
    Common interface all fetch strategies implement.

    Attributes
    ----------
    name : str
        A short machine-friendly identifier.
    description : str
        A human-friendly summary of the approach.
    default_fields : tuple[str, ...]
        Fields used when the request names none.
    """

    name: str
    description: str
    default_fields: Tuple[str, ...]
    peak_rows_in_memory: int

    def select(self, request: FetchRequest, schema: TableSchema) -> SelectStatement:
        ...

    def iterate(
        self, conn: TrackedConnection, request: FetchRequest, schema: TableSchema
    ) -> Iterator[Any]:
        ...

    def count(self, conn: TrackedConnection, request: FetchRequest, schema: TableSchema) -> int:
        ...

    def exists(self, conn: TrackedConnection, request: FetchRequest, schema: TableSchema) -> bool:
        ...


class AbstractFetchStrategy(abc.ABC):
    """
    Base class for strategies that answer a request with one SELECT.

    Subclasses set `name`, `description`, `default_fields` and implement
    `select`; `as_dicts` picks the psycopg row factory.
    """

    name: str
    description: str
    default_fields: Tuple[str, ...] = ()
    as_dicts: bool = True

    def __init__(self) -> None:
        self.peak_rows_in_memory = 0

    def fields(self, request: FetchRequest, schema: TableSchema) -> Tuple[str, ...]:
        return schema.validate_fields(request.fields or self.default_fields)

    @abc.abstractmethod
    def select(self, request: FetchRequest, schema: TableSchema) -> SelectStatement:
        """Describe the base query for `request`."""
        raise NotImplementedError

    def build_item(self, row: Any, conn: TrackedConnection, schema: TableSchema) -> Any:
        return row

    def iterate(
        self, conn: TrackedConnection, request: FetchRequest, schema: TableSchema
    ) -> Iterator[Any]:
        sql, params = self.select(request, schema).render(schema)
        rows = conn.query(sql, params, as_dicts=self.as_dicts)
        self.peak_rows_in_memory = max(self.peak_rows_in_memory, len(rows))
        for row in rows:
            yield self.build_item(row, conn, schema)

    def count(self, conn: TrackedConnection, request: FetchRequest, schema: TableSchema) -> int:
        sql, params = self.select(request, schema).render(schema)
        return int(conn.scalar(f"SELECT COUNT(*) FROM ({sql}) AS sub", params))

    def exists(self, conn: TrackedConnection, request: FetchRequest, schema: TableSchema) -> bool:
        # the inner LIMIT lets PostgreSQL stop at the first match
        statement = self.select(request, schema)
        if statement.limit is None or statement.limit > 1:
            statement = SelectStatement(
                columns=statement.columns,
                where=statement.where,
                distinct=statement.distinct,
                limit=1 if statement.limit is None else min(statement.limit, 1),
            )
        sql, params = statement.render(schema)
        return bool(conn.scalar(f"SELECT EXISTS ({sql})", params))


def make_refetch(conn: TrackedConnection, schema: TableSchema) -> Refetch:
    """
    Loader used by live records for their deferred columns.

    Each call is one secondary round-trip reading a single column of a single
    row. A row deleted since the primary fetch raises RecordNotFoundError.
    """
    pk_sql = quote_ident(schema.pk)

    def refetch(pk: Any, field: str) -> Any:
        sql = f"SELECT {quote_ident(field)} FROM {schema.qualified_name} WHERE {pk_sql} = %s"
        rows = conn.query(sql, [pk], as_dicts=False, kind=REFETCH)
        if not rows:
            raise RecordNotFoundError(schema.name, pk, field)
        log.debug("Deferred field loaded", extra={"pk": pk, "field": field})
        return rows[0][0]

    return refetch


__all__ = [
    "AbstractFetchStrategy",
    "FetchStrategy",
    "StrategyResult",
    "make_refetch",
]
