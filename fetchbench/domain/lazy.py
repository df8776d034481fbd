"""
Lazily loaded row objects.

A `LiveRecord` holds one `LazyValue` cell per column of its table. Cells for
columns the query selected are filled on construction; the others hold a
loader closure that fetches the single column for this row's primary key
the first time it is read, then caches the result. Reading is always
explicit (`record.get("data")` or `record["data"]`).
"""

from __future__ import annotations

from functools import partial
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from fetchbench.domain.errors import UnknownFieldError
from fetchbench.domain.models import BenchmarkRecord
from fetchbench.domain.schema import TableSchema

Refetch = Callable[[Any, str], Any]

_UNSET = object()


class LazyValue:
    """A value cell holding either a fetched value or the closure that fetches it."""

    __slots__ = ("_value", "_loader")

    def __init__(self, value: Any = _UNSET, loader: Optional[Callable[[], Any]] = None) -> None:
        if value is _UNSET and loader is None:
            raise ValueError("LazyValue needs a value or a loader")
        self._value = value
        self._loader = loader

    @classmethod
    def loaded(cls, value: Any) -> "LazyValue":
        return cls(value=value)

    @classmethod
    def deferred(cls, loader: Callable[[], Any]) -> "LazyValue":
        return cls(loader=loader)

    @property
    def is_loaded(self) -> bool:
        return self._value is not _UNSET

    def get(self) -> Any:
        if self._value is _UNSET:
            self._value = self._loader()
            self._loader = None
        return self._value


class LiveRecord:
    """A fetched row bound to the connection it came from."""

    __slots__ = ("_table", "_pk", "_cells")

    def __init__(self, table: str, pk: Any, cells: Dict[str, LazyValue]) -> None:
        self._table = table
        self._pk = pk
        self._cells = cells

    @classmethod
    def from_row(
        cls, row: Mapping[str, Any], schema: TableSchema, refetch: Refetch
    ) -> "LiveRecord":
        pk = row[schema.pk]
        cells: Dict[str, LazyValue] = {}
        for name in schema.field_names:
            if name in row:
                cells[name] = LazyValue.loaded(row[name])
            else:
                cells[name] = LazyValue.deferred(partial(refetch, pk, name))
        return cls(schema.name, pk, cells)

    @property
    def pk(self) -> Any:
        return self._pk

    @property
    def deferred_fields(self) -> Tuple[str, ...]:
        return tuple(name for name, cell in self._cells.items() if not cell.is_loaded)

    def is_loaded(self, field: str) -> bool:
        return self._cell(field).is_loaded

    def get(self, field: str) -> Any:
        return self._cell(field).get()

    __getitem__ = get

    def to_dict(self) -> Dict[str, Any]:
        """Every column of the row; deferred columns are loaded one by one."""
        return {name: cell.get() for name, cell in self._cells.items()}

    def to_model(self) -> BenchmarkRecord:
        return BenchmarkRecord(**self.to_dict())

    def _cell(self, field: str) -> LazyValue:
        try:
            return self._cells[field]
        except KeyError:
            raise UnknownFieldError(field, self._table) from None

    def __repr__(self) -> str:
        loaded = [name for name, cell in self._cells.items() if cell.is_loaded]
        return f"LiveRecord({self._table}, pk={self._pk!r}, loaded={loaded})"


__all__ = ["LazyValue", "LiveRecord", "Refetch"]
