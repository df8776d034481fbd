"""
Single-column fetches returning bare values.

- `flat_list_fetch`: every value of one column, in primary-key order.
- `database_distinct_fetch`: `SELECT DISTINCT`, deduplicated by PostgreSQL.
- `client_distinct_fetch`: the flat list, deduplicated in Python afterwards.

The last two always produce the same set of values; they differ in how many
rows cross the wire and how many sit in client memory.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Hashable, Iterable, Iterator, List, Tuple

from fetchbench.domain.errors import InvalidRequestError
from fetchbench.domain.query import FetchRequest, SelectStatement
from fetchbench.domain.schema import TableSchema
from fetchbench.infrastructure.tracking import TrackedConnection
from fetchbench.strategies.abstract import AbstractFetchStrategy


def _canonical(value: Any) -> Hashable:
    # jsonb equality: key order is irrelevant and 1 equals 1.0
    if isinstance(value, dict):
        return ("object", tuple(sorted((key, _canonical(item)) for key, item in value.items())))
    if isinstance(value, list):
        return ("array", tuple(_canonical(item) for item in value))
    if isinstance(value, bool):
        return ("bool", value)
    if isinstance(value, (int, float)):
        return ("number", Decimal(str(value)))
    return value


def _dedupe_key(value: Any) -> Hashable:
    if isinstance(value, (dict, list)):
        return _canonical(value)
    return value


def dedupe(values: Iterable[Any]) -> List[Any]:
    """Drop repeated values, keeping the first occurrence of each."""
    seen = set()
    unique: List[Any] = []
    for value in values:
        key = _dedupe_key(value)
        if key not in seen:
            seen.add(key)
            unique.append(value)
    return unique


class FlatListFetchStrategy(AbstractFetchStrategy):
    name: str = "flat_list_fetch"
    description: str = "SELECT one column as a bare list of values."
    default_fields: Tuple[str, ...] = ("databook_id",)
    as_dicts: bool = False

    def column(self, request: FetchRequest, schema: TableSchema) -> str:
        fields = self.fields(request, schema)
        if len(fields) != 1:
            raise InvalidRequestError(
                f"{self.name} needs exactly one field, got {len(fields)}",
                detail=", ".join(fields) or "none",
            )
        return fields[0]

    def select(self, request: FetchRequest, schema: TableSchema) -> SelectStatement:
        return SelectStatement(
            columns=(self.column(request, schema),),
            where=request.where,
            order_by=(schema.pk,),
            limit=request.limit,
        )

    def build_item(self, row: Any, conn: TrackedConnection, schema: TableSchema) -> Any:
        return row[0]


class DatabaseDistinctFetchStrategy(FlatListFetchStrategy):
    name: str = "database_distinct_fetch"
    description: str = "SELECT DISTINCT one column; deduplication done by the database."

    def select(self, request: FetchRequest, schema: TableSchema) -> SelectStatement:
        column = self.column(request, schema)
        return SelectStatement(
            columns=(column,),
            where=request.where,
            distinct=True,
            order_by=(column,),
            limit=request.limit,
        )


class ClientDistinctFetchStrategy(FlatListFetchStrategy):
    name: str = "client_distinct_fetch"
    description: str = "SELECT one column, then deduplicate in Python."

    def iterate(
        self, conn: TrackedConnection, request: FetchRequest, schema: TableSchema
    ) -> Iterator[Any]:
        # the limit applies to distinct values, so fetch the whole column first
        unlimited = FetchRequest(table=request.table, fields=request.fields, where=request.where)
        values = dedupe(super().iterate(conn, unlimited, schema))
        if request.limit is not None:
            values = values[: request.limit]
        yield from values

    def count(self, conn: TrackedConnection, request: FetchRequest, schema: TableSchema) -> int:
        return sum(1 for _ in self.iterate(conn, request, schema))

    def exists(self, conn: TrackedConnection, request: FetchRequest, schema: TableSchema) -> bool:
        return any(True for _ in self.iterate(conn, request, schema))


__all__ = [
    "ClientDistinctFetchStrategy",
    "DatabaseDistinctFetchStrategy",
    "FlatListFetchStrategy",
    "dedupe",
]
