"""
Database-side arithmetic for in-place updates.

    F("knowledge_begin_date") + timedelta(days=10)

renders as `("knowledge_begin_date" + %s)` and is evaluated by PostgreSQL for
every matching row, so nothing is read into Python, mutated and written back.

`resolve_type` walks the expression against the table schema and raises
`TypeMismatchError` for operand combinations PostgreSQL would reject, which
lets the executor refuse an update before a single statement is sent.
"""

from __future__ import annotations

import abc
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, List, Tuple

from fetchbench.domain.errors import TypeMismatchError
from fetchbench.domain.schema import ColumnType, TableSchema, adapt_param, quote_ident

Compiled = Tuple[str, List[Any]]

_ADDITIVE = ("+", "-")


class Expression(abc.ABC):
    def __add__(self, other: Any) -> "CombinedExpression":
        return CombinedExpression(self, "+", _wrap(other))

    def __radd__(self, other: Any) -> "CombinedExpression":
        return CombinedExpression(_wrap(other), "+", self)

    def __sub__(self, other: Any) -> "CombinedExpression":
        return CombinedExpression(self, "-", _wrap(other))

    def __rsub__(self, other: Any) -> "CombinedExpression":
        return CombinedExpression(_wrap(other), "-", self)

    def __mul__(self, other: Any) -> "CombinedExpression":
        return CombinedExpression(self, "*", _wrap(other))

    def __rmul__(self, other: Any) -> "CombinedExpression":
        return CombinedExpression(_wrap(other), "*", self)

    @abc.abstractmethod
    def compile(self, schema: TableSchema) -> Compiled:
        ...

    @abc.abstractmethod
    def resolve_type(self, schema: TableSchema) -> ColumnType:
        ...


def _wrap(value: Any) -> Expression:
    if isinstance(value, Expression):
        return value
    return Value(value)


@dataclass(frozen=True)
class F(Expression):
    """Reference to the current value of a column in the row being updated."""

    column: str

    def compile(self, schema: TableSchema) -> Compiled:
        schema.column(self.column)
        return quote_ident(self.column), []

    def resolve_type(self, schema: TableSchema) -> ColumnType:
        return schema.column(self.column).type


@dataclass(frozen=True)
class Value(Expression):
    """A literal bound as a query parameter."""

    value: Any

    def compile(self, schema: TableSchema) -> Compiled:
        return "%s", [adapt_param(self.value)]

    def resolve_type(self, schema: TableSchema) -> ColumnType:
        value = self.value
        # bool is an int subclass but never a valid arithmetic operand here
        if isinstance(value, bool):
            raise TypeMismatchError(f"Boolean literal {value!r} is not an arithmetic operand")
        if isinstance(value, int):
            return ColumnType.BIGINT
        if isinstance(value, (float, Decimal)):
            return ColumnType.NUMERIC
        if isinstance(value, timedelta):
            return ColumnType.INTERVAL
        if isinstance(value, datetime):
            return ColumnType.TIMESTAMP
        if isinstance(value, uuid.UUID):
            return ColumnType.UUID
        if isinstance(value, (dict, list)):
            return ColumnType.JSON
        raise TypeMismatchError(
            f"Unsupported literal of type {type(value).__name__} in expression",
            detail=repr(value),
        )


@dataclass(frozen=True)
class CombinedExpression(Expression):
    lhs: Expression
    op: str
    rhs: Expression

    def compile(self, schema: TableSchema) -> Compiled:
        lhs_sql, lhs_params = self.lhs.compile(schema)
        rhs_sql, rhs_params = self.rhs.compile(schema)
        return f"({lhs_sql} {self.op} {rhs_sql})", lhs_params + rhs_params

    def resolve_type(self, schema: TableSchema) -> ColumnType:
        left = self.lhs.resolve_type(schema)
        right = self.rhs.resolve_type(schema)
        result = _combine(left, self.op, right)
        if result is None:
            raise TypeMismatchError(
                f"Cannot apply '{self.op}' to {left.value} and {right.value}",
                detail=f"{self!r}",
            )
        return result


def _combine(left: ColumnType, op: str, right: ColumnType) -> ColumnType | None:
    if left.is_numeric and right.is_numeric:
        if left.is_integer and right.is_integer:
            return ColumnType.BIGINT
        return ColumnType.NUMERIC
    if op in _ADDITIVE:
        if left is ColumnType.TIMESTAMP and right is ColumnType.INTERVAL:
            return ColumnType.TIMESTAMP
        if left is ColumnType.INTERVAL and right is ColumnType.INTERVAL:
            return ColumnType.INTERVAL
    if op == "+" and left is ColumnType.INTERVAL and right is ColumnType.TIMESTAMP:
        return ColumnType.TIMESTAMP
    if op == "-" and left is ColumnType.TIMESTAMP and right is ColumnType.TIMESTAMP:
        return ColumnType.INTERVAL
    if op == "*" and ColumnType.INTERVAL in (left, right):
        other = right if left is ColumnType.INTERVAL else left
        if other.is_numeric:
            return ColumnType.INTERVAL
    return None


def check_assignable(target: ColumnType, source: ColumnType, column: str) -> None:
    """Raise TypeMismatchError unless a value of `source` type can be stored in `target`."""
    if target is source:
        return
    if target.is_integer and source.is_integer:
        return
    if target is ColumnType.NUMERIC and source.is_numeric:
        return
    raise TypeMismatchError(
        f"Cannot assign {source.value} expression to column '{column}' ({target.value})"
    )


__all__ = [
    "CombinedExpression",
    "Expression",
    "F",
    "Value",
    "check_assignable",
]
