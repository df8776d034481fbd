"""
Mapping fetch: named columns as plain dictionaries.

There is no live object behind a dict, so reading a key that was not
selected raises KeyError instead of going back to the database.
"""

from __future__ import annotations

from typing import Tuple

from fetchbench.domain.query import FetchRequest, SelectStatement
from fetchbench.domain.schema import TableSchema
from fetchbench.strategies.abstract import AbstractFetchStrategy


class MappingFetchStrategy(AbstractFetchStrategy):
    name: str = "mapping_fetch"
    description: str = "SELECT named columns as dicts (all columns when none given); no refetch."
    default_fields: Tuple[str, ...] = ()

    def select(self, request: FetchRequest, schema: TableSchema) -> SelectStatement:
        fields = self.fields(request, schema) or schema.field_names
        return SelectStatement(
            columns=tuple(dict.fromkeys(fields)),
            where=request.where,
            order_by=(schema.pk,),
            limit=request.limit,
        )


__all__ = ["MappingFetchStrategy"]
