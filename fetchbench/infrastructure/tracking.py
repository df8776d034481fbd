"""
Round-trip accounting.

Every statement the harness sends goes through a `TrackedConnection`, which
records one round-trip per statement under a kind label. Strategies and the
executor read the counter before and after a run to report both the total
and the secondary (refetch) round-trips.
"""

from __future__ import annotations

import contextlib
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Generator, List, Optional, Sequence

from psycopg import Connection
from psycopg.rows import dict_row, tuple_row

from fetchbench.utils.logging import get_logger

log = get_logger(__name__)

PRIMARY = "primary"
REFETCH = "refetch"
WRITE = "write"
DDL = "ddl"
TRANSACTION = "transaction"


@dataclass
class RoundTripCounter:
    by_kind: Counter = field(default_factory=Counter)

    def record(self, kind: str) -> None:
        self.by_kind[kind] += 1

    @property
    def total(self) -> int:
        return sum(self.by_kind.values())

    def snapshot(self) -> Dict[str, int]:
        return dict(self.by_kind)

    def since(self, snapshot: Dict[str, int]) -> Dict[str, int]:
        """Round-trips per kind recorded after `snapshot` was taken."""
        delta = {kind: count - snapshot.get(kind, 0) for kind, count in self.by_kind.items()}
        return {kind: count for kind, count in delta.items() if count}


class TrackedConnection:
    """Thin wrapper over a psycopg connection that counts round-trips."""

    def __init__(self, conn: Connection, counter: Optional[RoundTripCounter] = None) -> None:
        self._conn = conn
        self.counter = counter or RoundTripCounter()

    @property
    def round_trips(self) -> int:
        return self.counter.total

    def query(
        self,
        sql: str,
        params: Sequence[Any] = (),
        *,
        as_dicts: bool = True,
        kind: str = PRIMARY,
    ) -> List[Any]:
        """Execute a SELECT and return all of its rows in one round-trip."""
        self.counter.record(kind)
        log.debug("query", extra={"sql": sql, "kind": kind})
        with self._conn.cursor(row_factory=dict_row if as_dicts else tuple_row) as cur:
            cur.execute(sql, list(params) or None)
            return cur.fetchall()

    def scalar(self, sql: str, params: Sequence[Any] = (), *, kind: str = PRIMARY) -> Any:
        rows = self.query(sql, params, as_dicts=False, kind=kind)
        return rows[0][0] if rows else None

    def execute(self, sql: str, params: Sequence[Any] = (), *, kind: str = WRITE) -> int:
        """Execute a statement that returns no rows; returns the affected row count."""
        self.counter.record(kind)
        log.debug("execute", extra={"sql": sql, "kind": kind})
        with self._conn.cursor() as cur:
            cur.execute(sql, list(params) or None)
            return cur.rowcount

    @contextlib.contextmanager
    def transaction(self) -> Generator["TrackedConnection", None, None]:
        """
        Run the enclosed statements atomically.

        BEGIN and COMMIT/ROLLBACK are counted as round-trips of their own.
        """
        self.counter.record(TRANSACTION)
        try:
            with self._conn.transaction():
                yield self
        finally:
            self.counter.record(TRANSACTION)

    def close(self) -> None:
        self._conn.close()


__all__ = [
    "DDL",
    "PRIMARY",
    "REFETCH",
    "TRANSACTION",
    "WRITE",
    "RoundTripCounter",
    "TrackedConnection",
]
