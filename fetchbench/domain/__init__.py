"""
Domain package for fetchbench.

Exports the table schema, the row model, the filter/update expression trees
and the lazily loaded record type used across strategies and the executor.
Keep this package free of I/O: nothing here talks to the database directly.
"""

from fetchbench.domain.errors import (
    FetchBenchError,
    FieldAccessError,
    InvalidRequestError,
    RecordNotFoundError,
    TypeMismatchError,
    UnknownFieldError,
    UpdateFailedError,
)
from fetchbench.domain.expressions import F, Value
from fetchbench.domain.lazy import LazyValue, LiveRecord
from fetchbench.domain.models import BenchmarkRecord
from fetchbench.domain.predicates import And, Eq, IsNull, Not, Or, Predicate
from fetchbench.domain.query import FetchMode, FetchRequest, SelectStatement
from fetchbench.domain.schema import ColumnType, TableSchema, benchmark_schema

__all__ = [
    "And",
    "BenchmarkRecord",
    "ColumnType",
    "Eq",
    "F",
    "FetchBenchError",
    "FetchMode",
    "FetchRequest",
    "FieldAccessError",
    "InvalidRequestError",
    "IsNull",
    "LazyValue",
    "LiveRecord",
    "Not",
    "Or",
    "Predicate",
    "RecordNotFoundError",
    "SelectStatement",
    "TableSchema",
    "TypeMismatchError",
    "UnknownFieldError",
    "UpdateFailedError",
    "Value",
    "benchmark_schema",
]
