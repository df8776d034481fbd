"""
Pytest configuration for fetchbench.

Provides fixtures for:
- An in-memory fake of the psycopg connection surface the harness uses
  (unit tests)
- Deterministic benchmark rows
- Database connection management and table setup for integration tests
"""

from __future__ import annotations

import os
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Generator, List, Optional

import psycopg
import pytest
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from fetchbench.config import Settings
from fetchbench.domain.predicates import Predicate
from fetchbench.domain.schema import TableSchema, benchmark_schema
from fetchbench.infrastructure.tracking import TrackedConnection

DATABOOK_IDS = [uuid.UUID(int=i, version=4) for i in (11, 22, 33)]
DATASHEET_IDS = [uuid.UUID(int=i, version=4) for i in (101, 202)]
EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)

Responder = Callable[[str, List[Any]], Any]


# ---------------------------------------------------------------------------
# Fake psycopg connection
# ---------------------------------------------------------------------------


class FakeCursor:
    def __init__(self, conn: "FakePgConnection", row_factory: Any) -> None:
        self._conn = conn
        self._as_dicts = row_factory is dict_row
        self._rows: List[Any] = []
        self.rowcount = -1

    def __enter__(self) -> "FakeCursor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        del exc_type, exc, tb

    def execute(self, sql: str, params: Optional[List[Any]] = None) -> None:
        params = list(params or [])
        self._conn.statements.append((sql, params))
        result = self._conn.responder(sql, params)
        if isinstance(result, int):
            self.rowcount = result
            self._rows = []
            return
        rows = [dict(row) for row in result]
        self.rowcount = len(rows)
        self._rows = rows if self._as_dicts else [tuple(row.values()) for row in rows]

    def fetchall(self) -> List[Any]:
        return self._rows


class FakeTransaction:
    def __init__(self, conn: "FakePgConnection") -> None:
        self._conn = conn

    def __enter__(self) -> None:
        self._conn.transactions.append("BEGIN")

    def __exit__(self, exc_type, exc, tb) -> bool:
        del exc, tb
        self._conn.transactions.append("ROLLBACK" if exc_type else "COMMIT")
        return False


class FakePgConnection:
    def __init__(self, responder: Responder) -> None:
        self.responder = responder
        self.statements: List[tuple] = []
        self.transactions: List[str] = []
        self.closed = False

    def cursor(self, row_factory: Any = None) -> FakeCursor:
        return FakeCursor(self, row_factory)

    def transaction(self) -> FakeTransaction:
        return FakeTransaction(self)

    def close(self) -> None:
        self.closed = True


_SELECT = re.compile(r'^SELECT (DISTINCT )?(.+?) FROM "benchmark_records"(.*)$', re.S)
_ORDER = re.compile(r'ORDER BY "(\w+)"')


class InMemoryTable:
    """
    Answers the SELECT shapes the strategies render, over a list of row dicts.

    `where` stands in for whatever predicate the test passed to the request;
    it is applied with `Predicate.matches` to every non-refetch query.
    """

    def __init__(self, rows: List[Dict[str, Any]], where: Optional[Predicate] = None) -> None:
        self.rows = sorted(rows, key=lambda row: row["id"])
        self.where = where

    def __call__(self, sql: str, params: List[Any]) -> Any:
        if sql.startswith("SELECT COUNT(*) FROM ("):
            inner = sql[len("SELECT COUNT(*) FROM (") : -len(") AS sub")]
            return [{"count": len(self(inner, params))}]
        if sql.startswith("SELECT EXISTS ("):
            inner = sql[len("SELECT EXISTS (") : -1]
            return [{"exists": bool(self(inner, params))}]

        match = _SELECT.match(sql)
        assert match, f"unexpected SQL: {sql}"
        distinct, select_list, tail = match.groups()
        with_total = "COUNT(*) OVER ()" in select_list
        columns = [c for c in re.findall(r'"(\w+)"', select_list) if c != "_total_rows"]
        params = list(params)

        if tail.strip() == 'WHERE "id" = %s':
            rows = [row for row in self.rows if row["id"] == params[0]]
            return [{c: row[c] for c in columns} for row in rows]

        limit = params.pop() if "LIMIT %s" in tail else None
        after = params.pop() if '"id" > %s' in tail else None
        rows = [row for row in self.rows if self.where is None or self.where.matches(row)]
        total = len(rows)
        if after is not None:
            rows = [row for row in rows if row["id"] > after]

        out = [{c: row[c] for c in columns} for row in rows]
        if distinct:
            unique: Dict[Any, Dict[str, Any]] = {}
            for item in out:
                unique.setdefault(item[columns[0]], item)
            out = list(unique.values())
            order = _ORDER.search(tail)
            if order and order.group(1) == columns[0]:
                out.sort(key=lambda item: item[columns[0]])
        if with_total:
            for item in out:
                item["_total_rows"] = total
        if limit is not None:
            out = out[:limit]
        return out


def make_row(pk: int, **overrides: Any) -> Dict[str, Any]:
    row = {
        "id": pk,
        "knowledge_begin_date": EPOCH + timedelta(hours=pk),
        "knowledge_end_date": None,
        "client_id": pk % 5,
        "databook_id": DATABOOK_IDS[pk % len(DATABOOK_IDS)],
        "datasheet_id": DATASHEET_IDS[pk % len(DATASHEET_IDS)],
        "data": {"row": pk},
    }
    row.update(overrides)
    return row


@pytest.fixture
def schema() -> TableSchema:
    return benchmark_schema()


@pytest.fixture
def rows_factory() -> Callable[..., List[Dict[str, Any]]]:
    def build(count: int) -> List[Dict[str, Any]]:
        return [make_row(pk) for pk in range(1, count + 1)]

    return build


@pytest.fixture
def fake_db() -> Callable[..., tuple]:
    """
    Build `(fake_connection, tracked_connection, table)` over in-memory rows.

    Pass `responder=` instead of rows to script the answers directly.
    """

    def build(
        rows: Optional[List[Dict[str, Any]]] = None,
        where: Optional[Predicate] = None,
        responder: Optional[Responder] = None,
    ) -> tuple:
        table = InMemoryTable(rows or [], where=where)
        fake = FakePgConnection(responder or table)
        return fake, TrackedConnection(fake), table

    return build


# ---------------------------------------------------------------------------
# Integration fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "fetchbench"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            conn.execute("SELECT 1;").fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """Autocommit connection for integration tests; skips when the DB is unreachable."""
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn, autocommit=True)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def pg_schema(db_connection: psycopg.Connection) -> Generator[TableSchema, None, None]:
    """A freshly created, empty benchmark table dropped after the test."""
    schema = benchmark_schema(f"benchmark_records_test_{uuid.uuid4().hex[:8]}")
    db_connection.execute(schema.create_table_sql())
    try:
        yield schema
    finally:
        db_connection.execute(f"DROP TABLE IF EXISTS {schema.qualified_name}")


@pytest.fixture
def insert_rows(db_connection: psycopg.Connection, pg_schema: TableSchema):
    """Insert row dicts (without `id`) into the test table."""

    def insert(rows: List[Dict[str, Any]]) -> None:
        with db_connection.cursor() as cur:
            cur.executemany(
                f"INSERT INTO {pg_schema.qualified_name} "
                '("knowledge_begin_date", "knowledge_end_date", "client_id", '
                '"databook_id", "datasheet_id", "data") VALUES (%s, %s, %s, %s, %s, %s)',
                [
                    (
                        row["knowledge_begin_date"],
                        row.get("knowledge_end_date"),
                        row["client_id"],
                        row["databook_id"],
                        row["datasheet_id"],
                        Jsonb(row["data"]) if row.get("data") is not None else None,
                    )
                    for row in rows
                ],
            )

    return insert
