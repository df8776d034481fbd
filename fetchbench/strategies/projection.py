"""
Projection and exclusion fetches: live records with deferred columns.

Both strategies select a subset of columns and wrap each row in a
`LiveRecord`. Reading a column that was not selected is not an error: it
costs one extra round-trip for that row and that column, then the value is
cached on the record. Touching one deferred field across N records
therefore costs N secondary round-trips.
"""

from __future__ import annotations

from typing import Any, Tuple

from fetchbench.domain.errors import InvalidRequestError
from fetchbench.domain.lazy import LiveRecord
from fetchbench.domain.query import FetchRequest, SelectStatement
from fetchbench.domain.schema import TableSchema
from fetchbench.infrastructure.tracking import TrackedConnection
from fetchbench.strategies.abstract import AbstractFetchStrategy, make_refetch


class _LiveRecordStrategy(AbstractFetchStrategy):
    def loaded_columns(self, request: FetchRequest, schema: TableSchema) -> Tuple[str, ...]:
        raise NotImplementedError

    def select(self, request: FetchRequest, schema: TableSchema) -> SelectStatement:
        return SelectStatement(
            columns=self.loaded_columns(request, schema),
            where=request.where,
            order_by=(schema.pk,),
            limit=request.limit,
        )

    def build_item(self, row: Any, conn: TrackedConnection, schema: TableSchema) -> LiveRecord:
        return LiveRecord.from_row(row, schema, make_refetch(conn, schema))


class ProjectionFetchStrategy(_LiveRecordStrategy):
    """Load the primary key plus the named columns; everything else is deferred."""

    name: str = "projection_fetch"
    description: str = "SELECT id + named columns; other columns refetched per row on access."
    default_fields: Tuple[str, ...] = ("client_id",)

    def loaded_columns(self, request: FetchRequest, schema: TableSchema) -> Tuple[str, ...]:
        fields = self.fields(request, schema)
        return (schema.pk,) + tuple(name for name in dict.fromkeys(fields) if name != schema.pk)


class ExclusionFetchStrategy(_LiveRecordStrategy):
    """Load every column except the named ones, which are deferred."""

    name: str = "exclusion_fetch"
    description: str = "SELECT all but the named columns; excluded ones refetched per row on access."
    default_fields: Tuple[str, ...] = ("data",)

    def loaded_columns(self, request: FetchRequest, schema: TableSchema) -> Tuple[str, ...]:
        excluded = set(self.fields(request, schema))
        if schema.pk in excluded:
            raise InvalidRequestError(
                f"Cannot exclude primary key '{schema.pk}'",
                detail="deferred columns are refetched by primary key",
            )
        return tuple(name for name in schema.field_names if name not in excluded)


__all__ = ["ExclusionFetchStrategy", "ProjectionFetchStrategy"]
