"""
Fetch requests and the SELECT statements strategies build from them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple

from fetchbench.domain.errors import InvalidRequestError
from fetchbench.domain.predicates import Predicate
from fetchbench.domain.schema import TableSchema, quote_ident

Compiled = Tuple[str, List[Any]]


class FetchMode(str, Enum):
    """What the executor does with a strategy's query."""

    FETCH = "fetch"
    EXISTS = "exists"
    COUNT = "count"


@dataclass(frozen=True)
class FetchRequest:
    """
    One benchmark query against the table.

    `fields` means different things per strategy: the columns to load
    (projection, mapping, flat list) or the columns to leave out (exclusion).
    An empty tuple lets the strategy fall back to its defaults.
    """

    table: str
    fields: Tuple[str, ...] = ()
    where: Optional[Predicate] = None
    limit: Optional[int] = None
    page_size: Optional[int] = None

    def __post_init__(self) -> None:
        if self.limit is not None and self.limit < 0:
            raise InvalidRequestError(f"limit must be >= 0, got {self.limit}")
        if self.page_size is not None and self.page_size <= 0:
            raise InvalidRequestError(f"page_size must be > 0, got {self.page_size}")


@dataclass(frozen=True)
class SelectStatement:
    columns: Tuple[str, ...]
    where: Optional[Predicate] = None
    distinct: bool = False
    order_by: Tuple[str, ...] = ()
    limit: Optional[int] = None
    # raw select-list items appended after the quoted columns
    extra_columns: Tuple[str, ...] = field(default_factory=tuple)
    # keyset pagination: only rows whose primary key is greater than this
    after_pk: Optional[Any] = None

    def render(self, schema: TableSchema) -> Compiled:
        schema.validate_fields(self.columns)
        schema.validate_fields(self.order_by)
        select_list = [quote_ident(name) for name in self.columns] + list(self.extra_columns)
        if not select_list:
            raise InvalidRequestError("SELECT needs at least one column")

        distinct = "DISTINCT " if self.distinct else ""
        sql = f"SELECT {distinct}{', '.join(select_list)} FROM {schema.qualified_name}"
        params: List[Any] = []

        conditions: List[str] = []
        if self.where is not None:
            where_sql, where_params = self.where.compile(schema)
            conditions.append(where_sql)
            params.extend(where_params)
        if self.after_pk is not None:
            conditions.append(f"{quote_ident(schema.pk)} > %s")
            params.append(self.after_pk)
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)

        if self.order_by:
            sql += " ORDER BY " + ", ".join(quote_ident(name) for name in self.order_by)
        if self.limit is not None:
            sql += " LIMIT %s"
            params.append(self.limit)
        return sql, params


__all__ = ["FetchMode", "FetchRequest", "SelectStatement"]
