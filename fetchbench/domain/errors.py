"""
Exception hierarchy for fetchbench.

Every error carries a short message plus optional technical detail. Each class
also derives from the closest builtin so callers can catch by category
(`LookupError`, `TypeError`, `ValueError`) without importing this module.
"""

from __future__ import annotations

from typing import Any, Optional


class FetchBenchError(Exception):
    """Base exception for all fetchbench errors."""

    def __init__(self, message: str, detail: Optional[str] = None) -> None:
        self.message = message
        self.detail = detail
        super().__init__(message)

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message} | Detail: {self.detail}"
        return self.message


class UnknownFieldError(FetchBenchError, LookupError):
    """A column name that the table schema does not define."""

    def __init__(self, field: str, table: str) -> None:
        self.field = field
        self.table = table
        super().__init__(f"Unknown field '{field}' on table '{table}'")


class FieldAccessError(FetchBenchError, LookupError):
    """A field was read on a result item that has no fields (e.g. a bare scalar)."""

    def __init__(self, field: str, item: Any) -> None:
        self.field = field
        super().__init__(
            f"Cannot read field '{field}' from {type(item).__name__} result item",
            detail="flat-list results are bare values with no backing row",
        )


class RecordNotFoundError(FetchBenchError, LookupError):
    """A deferred field was read but its row no longer exists."""

    def __init__(self, table: str, pk: Any, field: str) -> None:
        self.table = table
        self.pk = pk
        self.field = field
        super().__init__(
            f"Row {table}.id={pk} vanished before deferred field '{field}' was loaded"
        )


class InvalidRequestError(FetchBenchError, ValueError):
    """A fetch request that a strategy cannot satisfy."""


class TypeMismatchError(FetchBenchError, TypeError):
    """Operand types of a database-side expression are incompatible."""


class UpdateFailedError(FetchBenchError):
    """The database rejected an update; the transaction was rolled back."""


__all__ = [
    "FetchBenchError",
    "FieldAccessError",
    "InvalidRequestError",
    "RecordNotFoundError",
    "TypeMismatchError",
    "UnknownFieldError",
    "UpdateFailedError",
]
