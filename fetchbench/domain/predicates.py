"""
Boolean filter expressions compiled into a single WHERE clause.

Predicates compose with `&`, `|` and `~`:

    a = Eq("client_id", 7)
    b = Eq("databook_id", some_uuid)
    xor = (a | b) & ~(a & b)
    sql, params = xor.compile(schema)

The whole tree is evaluated by PostgreSQL in one query. `matches` evaluates
the same tree against an in-memory row using SQL three-valued logic, so a
NULL column never satisfies `Eq` nor its negation.
"""

from __future__ import annotations

import abc
import uuid
from dataclasses import dataclass
from typing import Any, FrozenSet, List, Mapping, Optional, Tuple

from fetchbench.domain.errors import InvalidRequestError
from fetchbench.domain.schema import TableSchema, adapt_param, quote_ident

Compiled = Tuple[str, List[Any]]


def _normalize(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    return value


class Predicate(abc.ABC):
    def __and__(self, other: "Predicate") -> "Predicate":
        return And(_flatten(And, self) + _flatten(And, other))

    def __or__(self, other: "Predicate") -> "Predicate":
        return Or(_flatten(Or, self) + _flatten(Or, other))

    def __invert__(self) -> "Predicate":
        return Not(self)

    @abc.abstractmethod
    def compile(self, schema: TableSchema) -> Compiled:
        """Render this predicate as an SQL fragment with `%s` placeholders."""

    @abc.abstractmethod
    def evaluate(self, row: Mapping[str, Any]) -> Optional[bool]:
        """Three-valued evaluation: None stands for SQL UNKNOWN."""

    @abc.abstractmethod
    def columns(self) -> FrozenSet[str]:
        ...

    def matches(self, row: Mapping[str, Any]) -> bool:
        return self.evaluate(row) is True


def _flatten(kind: type, predicate: Predicate) -> Tuple[Predicate, ...]:
    if isinstance(predicate, kind):
        return predicate.children  # type: ignore[attr-defined]
    return (predicate,)


@dataclass(frozen=True, eq=True)
class Eq(Predicate):
    """`column = value`; a None value compiles to `IS NULL`."""

    column: str
    value: Any

    def compile(self, schema: TableSchema) -> Compiled:
        schema.column(self.column)
        if self.value is None:
            return f"{quote_ident(self.column)} IS NULL", []
        return f"{quote_ident(self.column)} = %s", [adapt_param(self.value)]

    def evaluate(self, row: Mapping[str, Any]) -> Optional[bool]:
        actual = row[self.column]
        if self.value is None:
            return actual is None
        if actual is None:
            return None
        return _normalize(actual) == _normalize(self.value)

    def columns(self) -> FrozenSet[str]:
        return frozenset((self.column,))


@dataclass(frozen=True, eq=True)
class IsNull(Predicate):
    column: str

    def compile(self, schema: TableSchema) -> Compiled:
        schema.column(self.column)
        return f"{quote_ident(self.column)} IS NULL", []

    def evaluate(self, row: Mapping[str, Any]) -> Optional[bool]:
        return row[self.column] is None

    def columns(self) -> FrozenSet[str]:
        return frozenset((self.column,))


@dataclass(frozen=True, eq=True)
class And(Predicate):
    children: Tuple[Predicate, ...]

    def compile(self, schema: TableSchema) -> Compiled:
        return _join(self.children, "AND", "TRUE", schema)

    def evaluate(self, row: Mapping[str, Any]) -> Optional[bool]:
        results = [child.evaluate(row) for child in self.children]
        if any(result is False for result in results):
            return False
        if any(result is None for result in results):
            return None
        return True

    def columns(self) -> FrozenSet[str]:
        return frozenset().union(*(child.columns() for child in self.children))


@dataclass(frozen=True, eq=True)
class Or(Predicate):
    children: Tuple[Predicate, ...]

    def compile(self, schema: TableSchema) -> Compiled:
        return _join(self.children, "OR", "FALSE", schema)

    def evaluate(self, row: Mapping[str, Any]) -> Optional[bool]:
        results = [child.evaluate(row) for child in self.children]
        if any(result is True for result in results):
            return True
        if any(result is None for result in results):
            return None
        return False

    def columns(self) -> FrozenSet[str]:
        return frozenset().union(*(child.columns() for child in self.children))


@dataclass(frozen=True, eq=True)
class Not(Predicate):
    child: Predicate

    def compile(self, schema: TableSchema) -> Compiled:
        sql, params = self.child.compile(schema)
        return f"NOT ({sql})", params

    def evaluate(self, row: Mapping[str, Any]) -> Optional[bool]:
        result = self.child.evaluate(row)
        return None if result is None else not result

    def columns(self) -> FrozenSet[str]:
        return self.child.columns()


def _join(children: Tuple[Predicate, ...], op: str, empty: str, schema: TableSchema) -> Compiled:
    if not children:
        return empty, []
    parts: List[str] = []
    params: List[Any] = []
    for child in children:
        sql, child_params = child.compile(schema)
        parts.append(sql)
        params.extend(child_params)
    return "(" + f" {op} ".join(parts) + ")", params


def where_clause(predicate: Optional[Predicate], schema: TableSchema) -> Compiled:
    """Return `" WHERE ..."` and its parameters, or an empty clause for no predicate."""
    if predicate is None:
        return "", []
    sql, params = predicate.compile(schema)
    return f" WHERE {sql}", params


def parse_equality(text: str, schema: TableSchema) -> Eq:
    """Parse `column=value` into an `Eq`, converting the value to the column's type."""
    column, sep, raw = text.partition("=")
    if not sep or not column.strip():
        raise InvalidRequestError(f"Expected column=value, got {text!r}")
    column = column.strip()
    return Eq(column, schema.coerce(column, raw.strip()))


__all__ = [
    "And",
    "Eq",
    "IsNull",
    "Not",
    "Or",
    "Predicate",
    "parse_equality",
    "where_clause",
]
