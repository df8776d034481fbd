"""
Table and index bootstrap for the benchmark table.

Creates the table if it is missing and toggles the optional indexes the
schema declares, so the same equality filter can be timed against an index
scan and a sequential scan.
"""

from __future__ import annotations

from typing import Iterable

from fetchbench.domain.schema import TableSchema
from fetchbench.infrastructure.tracking import DDL, TrackedConnection
from fetchbench.utils.logging import get_logger

log = get_logger(__name__)


def create_table(conn: TrackedConnection, schema: TableSchema) -> None:
    conn.execute(schema.create_table_sql(), kind=DDL)
    log.info("Benchmark table ready", extra={"table": schema.name})


def create_index(conn: TrackedConnection, schema: TableSchema, columns: Iterable[str]) -> str:
    index = schema.find_index(columns)
    conn.execute(schema.create_index_sql(index), kind=DDL)
    name = schema.index_name(index)
    log.info("Index created", extra={"table": schema.name, "index": name})
    return name


def drop_index(conn: TrackedConnection, schema: TableSchema, columns: Iterable[str]) -> str:
    index = schema.find_index(columns)
    conn.execute(schema.drop_index_sql(index), kind=DDL)
    name = schema.index_name(index)
    log.info("Index dropped", extra={"table": schema.name, "index": name})
    return name


__all__ = ["create_index", "create_table", "drop_index"]
