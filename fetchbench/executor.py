"""
Executor: runs one strategy against the table and measures it.

    executor = Executor(TrackedConnection(conn), benchmark_schema())
    report = executor.run(
        ProjectionFetchStrategy(),
        FetchRequest(table="benchmark_records", fields=("client_id",), where=Eq("client_id", 7)),
        touch=("data",),
    )
    report.round_trips, report.secondary_round_trips

`update` pushes arithmetic into PostgreSQL (`SET col = (expr) WHERE ...`)
and type-checks every expression before anything is sent, so a bad update
fails with zero rows touched and zero round-trips spent.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

import psycopg

from fetchbench.domain.errors import FieldAccessError, InvalidRequestError, UpdateFailedError
from fetchbench.domain.expressions import Expression, Value, check_assignable
from fetchbench.domain.lazy import LiveRecord
from fetchbench.domain.predicates import Predicate, where_clause
from fetchbench.domain.query import FetchMode, FetchRequest
from fetchbench.domain.schema import TableSchema, quote_ident
from fetchbench.infrastructure.tracking import REFETCH, TrackedConnection
from fetchbench.strategies.abstract import FetchStrategy, StrategyResult
from fetchbench.utils.logging import get_logger

log = get_logger(__name__)


def read_field(item: Any, field_name: str) -> Any:
    """
    Read one field from a result item the way application code would.

    Live records load deferred fields on demand, dicts raise KeyError for
    columns that were not selected, and bare values have no fields at all.
    """
    if isinstance(item, LiveRecord):
        return item.get(field_name)
    if isinstance(item, Mapping):
        return item[field_name]
    raise FieldAccessError(field_name, item)


@dataclass
class ExecutionReport:
    strategy: str
    mode: FetchMode
    rows: int
    duration_seconds: float
    round_trips: int
    secondary_round_trips: int
    round_trips_by_kind: Dict[str, int]
    peak_rows_in_memory: Optional[int] = None
    value: Any = None
    items: List[Any] = field(default_factory=list)

    def to_result(self) -> StrategyResult:
        throughput = self.rows / self.duration_seconds if self.duration_seconds > 0 else 0.0
        return StrategyResult(
            strategy=self.strategy,
            mode=self.mode.value,
            rows=self.rows,
            value=self.value,
            duration_seconds=self.duration_seconds,
            throughput_rows_per_sec=throughput,
            round_trips=self.round_trips,
            secondary_round_trips=self.secondary_round_trips,
            round_trips_by_kind=dict(self.round_trips_by_kind),
            peak_rows_in_memory=self.peak_rows_in_memory,
        )


@dataclass
class UpdateReport:
    rows_updated: int
    duration_seconds: float
    round_trips: int
    sql: str


class Executor:
    def __init__(self, conn: TrackedConnection, schema: TableSchema) -> None:
        self._conn = conn
        self._schema = schema

    @property
    def schema(self) -> TableSchema:
        return self._schema

    def run(
        self,
        strategy: FetchStrategy,
        request: FetchRequest,
        mode: FetchMode | str = FetchMode.FETCH,
        touch: Iterable[str] = (),
        collect: bool = False,
    ) -> ExecutionReport:
        """
        Execute `strategy` for `request` and report time and round-trips.

        Parameters
        ----------
        mode : FetchMode
            FETCH iterates the items; COUNT and EXISTS issue one aggregate query.
        touch : iterable[str]
            Fields read on every fetched item after it arrives. On live records
            this is what triggers secondary round-trips.
        collect : bool
            Keep the items on the report. Off by default so chunked iteration
            stays memory-bounded.
        """
        mode = FetchMode(mode)
        if request.table != self._schema.name:
            raise InvalidRequestError(
                f"Request targets '{request.table}' but executor is bound to '{self._schema.name}'"
            )
        touch = self._schema.validate_fields(touch)
        counter = self._conn.counter
        before = counter.snapshot()
        start = time.perf_counter()

        rows = 0
        value: Any = None
        items: List[Any] = []
        if mode is FetchMode.COUNT:
            value = strategy.count(self._conn, request, self._schema)
        elif mode is FetchMode.EXISTS:
            value = strategy.exists(self._conn, request, self._schema)
        else:
            for item in strategy.iterate(self._conn, request, self._schema):
                for name in touch:
                    read_field(item, name)
                rows += 1
                if collect:
                    items.append(item)

        duration = time.perf_counter() - start
        by_kind = counter.since(before)
        report = ExecutionReport(
            strategy=strategy.name,
            mode=mode,
            rows=rows,
            duration_seconds=duration,
            round_trips=sum(by_kind.values()),
            secondary_round_trips=by_kind.get(REFETCH, 0),
            round_trips_by_kind=by_kind,
            peak_rows_in_memory=getattr(strategy, "peak_rows_in_memory", None),
            value=value,
            items=items,
        )
        log.info(
            f"[EXECUTED] {strategy.name}",
            extra={
                "strategy": strategy.name,
                "mode": mode.value,
                "rows": rows,
                "round_trips": report.round_trips,
                "secondary_round_trips": report.secondary_round_trips,
            },
        )
        return report

    def update(
        self,
        assignments: Mapping[str, Any],
        where: Optional[Predicate] = None,
    ) -> UpdateReport:
        """
        Update columns in place with expressions evaluated by the database.

        Raises
        ------
        TypeMismatchError
            An expression combines or assigns incompatible types. Raised
            before any statement is sent.
        UpdateFailedError
            PostgreSQL rejected the statement; the transaction was rolled back.
        """
        sql, params = self._compile_update(assignments, where)
        before = self._conn.round_trips
        start = time.perf_counter()
        try:
            with self._conn.transaction():
                updated = self._conn.execute(sql, params)
        except psycopg.Error as exc:
            log.exception("[UPDATE FAILED] rolled back", extra={"table": self._schema.name})
            raise UpdateFailedError("Update rolled back", detail=str(exc)) from exc

        report = UpdateReport(
            rows_updated=updated,
            duration_seconds=time.perf_counter() - start,
            round_trips=self._conn.round_trips - before,
            sql=sql,
        )
        log.info(
            "[UPDATED]",
            extra={"table": self._schema.name, "rows": updated, "round_trips": report.round_trips},
        )
        return report

    def _compile_update(
        self, assignments: Mapping[str, Any], where: Optional[Predicate]
    ) -> tuple[str, List[Any]]:
        if not assignments:
            raise InvalidRequestError("Update needs at least one assignment")

        set_parts: List[str] = []
        params: List[Any] = []
        for column_name, expression in assignments.items():
            column = self._schema.column(column_name)
            if column.primary_key:
                raise InvalidRequestError(f"Refusing to update primary key '{column_name}'")
            if expression is None:
                if not column.nullable:
                    raise InvalidRequestError(f"Column '{column_name}' is NOT NULL")
                set_parts.append(f"{quote_ident(column_name)} = NULL")
                continue
            if not isinstance(expression, Expression):
                expression = Value(expression)
            check_assignable(column.type, expression.resolve_type(self._schema), column_name)
            expr_sql, expr_params = expression.compile(self._schema)
            set_parts.append(f"{quote_ident(column_name)} = {expr_sql}")
            params.extend(expr_params)

        where_sql, where_params = where_clause(where, self._schema)
        sql = f"UPDATE {self._schema.qualified_name} SET {', '.join(set_parts)}{where_sql}"
        return sql, params + where_params


__all__ = ["ExecutionReport", "Executor", "UpdateReport", "read_field"]
