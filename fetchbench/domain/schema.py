"""
Table schema for the benchmark table.

Describes the columns of `benchmark_records`, the optional indexes the
benchmarks toggle on and off, and renders the DDL for both. All SQL in the
project quotes identifiers through `quote_ident`/`quote_table`, and every
column name is checked against the schema before it reaches a statement.
"""

from __future__ import annotations

import json
import re
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Optional, Tuple

from psycopg.types.json import Jsonb

from fetchbench.domain.errors import InvalidRequestError, UnknownFieldError

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class ColumnType(str, Enum):
    """PostgreSQL types used by the benchmark table and by expressions."""

    BIGINT = "bigint"
    INTEGER = "integer"
    NUMERIC = "numeric"
    TIMESTAMP = "timestamptz"
    INTERVAL = "interval"
    UUID = "uuid"
    JSON = "jsonb"

    @property
    def is_integer(self) -> bool:
        return self in (ColumnType.BIGINT, ColumnType.INTEGER)

    @property
    def is_numeric(self) -> bool:
        return self.is_integer or self is ColumnType.NUMERIC


def quote_ident(name: str) -> str:
    """Double-quote a single SQL identifier after validating its shape."""
    if not _IDENTIFIER.match(name):
        raise InvalidRequestError(f"Invalid SQL identifier: {name!r}")
    return f'"{name}"'


def quote_table(name: str) -> str:
    """Quote a possibly schema-qualified table name (`public.records`)."""
    return ".".join(quote_ident(part) for part in name.split("."))


def adapt_param(value: Any) -> Any:
    """Wrap JSON documents so psycopg binds them as jsonb."""
    if isinstance(value, (dict, list)):
        return Jsonb(value)
    return value


@dataclass(frozen=True)
class Column:
    name: str
    type: ColumnType
    nullable: bool = True
    primary_key: bool = False

    def ddl(self) -> str:
        if self.primary_key:
            return f"{quote_ident(self.name)} BIGSERIAL PRIMARY KEY"
        null_sql = "" if self.nullable else " NOT NULL"
        return f"{quote_ident(self.name)} {self.type.value}{null_sql}"

    def coerce(self, raw: str) -> Any:
        """
        Convert command-line text into the Python value psycopg adapts to this column.

        The literal `null` maps to None on nullable columns.
        """
        if self.nullable and raw.strip().lower() == "null":
            return None
        try:
            if self.type.is_integer:
                return int(raw)
            if self.type is ColumnType.NUMERIC:
                return float(raw)
            if self.type is ColumnType.UUID:
                return uuid.UUID(raw)
            if self.type is ColumnType.TIMESTAMP:
                return datetime.fromisoformat(raw)
            if self.type is ColumnType.JSON:
                return json.loads(raw)
        except ValueError as exc:
            raise InvalidRequestError(
                f"Cannot convert {raw!r} for column '{self.name}' ({self.type.value})",
                detail=str(exc),
            ) from exc
        return raw


@dataclass(frozen=True)
class Index:
    """A b-tree index over one or more columns; unnamed until bound to a table."""

    columns: Tuple[str, ...]


@dataclass(frozen=True)
class TableSchema:
    name: str
    columns: Tuple[Column, ...]
    indexes: Tuple[Index, ...] = field(default_factory=tuple)

    @property
    def pk(self) -> str:
        for column in self.columns:
            if column.primary_key:
                return column.name
        raise InvalidRequestError(f"Table '{self.name}' has no primary key")

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(column.name for column in self.columns)

    @property
    def qualified_name(self) -> str:
        return quote_table(self.name)

    def column(self, name: str) -> Column:
        for column in self.columns:
            if column.name == name:
                return column
        raise UnknownFieldError(name, self.name)

    def validate_fields(self, names: Iterable[str]) -> Tuple[str, ...]:
        """Return `names` as a tuple, raising UnknownFieldError on the first unknown one."""
        resolved = tuple(names)
        for name in resolved:
            self.column(name)
        return resolved

    def with_table(self, name: str) -> "TableSchema":
        quote_table(name)
        return replace(self, name=name)

    def coerce(self, column: str, raw: str) -> Any:
        return self.column(column).coerce(raw)

    # DDL -----------------------------------------------------------------

    def create_table_sql(self) -> str:
        columns_sql = ",\n    ".join(column.ddl() for column in self.columns)
        return f"CREATE TABLE IF NOT EXISTS {self.qualified_name} (\n    {columns_sql}\n);"

    def index_name(self, index: Index) -> str:
        base = self.name.split(".")[-1]
        return f"{base}_{'_'.join(index.columns)}_idx"

    def find_index(self, columns: Iterable[str]) -> Index:
        wanted = tuple(columns)
        for index in self.indexes:
            if index.columns == wanted:
                return index
        raise InvalidRequestError(
            f"No index declared on {self.name}({', '.join(wanted)})",
            detail="declared: "
            + (", ".join("(" + ", ".join(i.columns) + ")" for i in self.indexes) or "none"),
        )

    def create_index_sql(self, index: Index) -> str:
        self.validate_fields(index.columns)
        cols = ", ".join(quote_ident(c) for c in index.columns)
        return (
            f"CREATE INDEX IF NOT EXISTS {quote_ident(self.index_name(index))} "
            f"ON {self.qualified_name} ({cols});"
        )

    def drop_index_sql(self, index: Index) -> str:
        parts = self.name.split(".")[:-1] + [self.index_name(index)]
        return f"DROP INDEX IF EXISTS {quote_table('.'.join(parts))};"


def benchmark_schema(table: Optional[str] = None) -> TableSchema:
    """
    Schema of the flat benchmark table.

    Only the primary key is indexed when the table is created; the declared
    indexes are opt-in so equality filters can be timed with and without them.
    """
    schema = TableSchema(
        name="benchmark_records",
        columns=(
            Column("id", ColumnType.BIGINT, nullable=False, primary_key=True),
            Column("knowledge_begin_date", ColumnType.TIMESTAMP, nullable=False),
            Column("knowledge_end_date", ColumnType.TIMESTAMP),
            Column("client_id", ColumnType.INTEGER, nullable=False),
            Column("databook_id", ColumnType.UUID, nullable=False),
            Column("datasheet_id", ColumnType.UUID, nullable=False),
            Column("data", ColumnType.JSON),
        ),
        indexes=(
            Index(("databook_id",)),
            Index(("client_id",)),
        ),
    )
    return schema.with_table(table) if table else schema


__all__ = [
    "Column",
    "ColumnType",
    "Index",
    "TableSchema",
    "adapt_param",
    "benchmark_schema",
    "quote_ident",
    "quote_table",
]
