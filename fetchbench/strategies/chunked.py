"""
Chunked iteration: the full matching set streamed in fixed-size pages.

Pages are read with keyset pagination (`WHERE id > <last id> ORDER BY id
LIMIT <page>`), so each page is one round-trip and at most one page of rows
is alive in the strategy at a time. The first page also carries
`COUNT(*) OVER ()`, the size of the whole filtered set, which lets the loop
stop after exactly ceil(N / page_size) pages instead of probing for an
empty one.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Iterator, Optional, Tuple

from fetchbench.config import get_settings
from fetchbench.domain.lazy import LiveRecord
from fetchbench.domain.query import FetchRequest, SelectStatement
from fetchbench.domain.schema import TableSchema
from fetchbench.infrastructure.tracking import TrackedConnection
from fetchbench.strategies.abstract import AbstractFetchStrategy, make_refetch
from fetchbench.utils.logging import get_logger

log = get_logger(__name__)

_TOTAL_KEY = "_total_rows"
_TOTAL_COLUMN = f'COUNT(*) OVER () AS "{_TOTAL_KEY}"'


class ChunkedIterationStrategy(AbstractFetchStrategy):
    name: str = "chunked_iteration"
    description: str = "Keyset pages of full rows; one round-trip per page, bounded memory."
    default_fields: Tuple[str, ...] = ()

    def __init__(self, page_size: Optional[int] = None) -> None:
        super().__init__()
        self.page_size = page_size or get_settings().benchmark_page_size
        self.pages = 0

    def select(self, request: FetchRequest, schema: TableSchema) -> SelectStatement:
        fields = self.fields(request, schema) or schema.field_names
        columns = (schema.pk,) + tuple(name for name in dict.fromkeys(fields) if name != schema.pk)
        return SelectStatement(
            columns=columns,
            where=request.where,
            order_by=(schema.pk,),
            limit=request.limit,
        )

    def iterate(
        self, conn: TrackedConnection, request: FetchRequest, schema: TableSchema
    ) -> Iterator[LiveRecord]:
        page_size = request.page_size or self.page_size
        base = self.select(request, schema)
        refetch = make_refetch(conn, schema)

        total: Optional[int] = None
        fetched = 0
        last_pk = None
        while True:
            remaining = page_size if request.limit is None else request.limit - fetched
            want = min(page_size, remaining)
            if want <= 0:
                break
            first_page = total is None
            statement = replace(
                base,
                limit=want,
                after_pk=last_pk,
                extra_columns=(_TOTAL_COLUMN,) if first_page else (),
            )
            sql, params = statement.render(schema)
            page = conn.query(sql, params)
            self.pages += 1
            self.peak_rows_in_memory = max(self.peak_rows_in_memory, len(page))

            if first_page:
                total = int(page[0][_TOTAL_KEY]) if page else 0
                if request.limit is not None:
                    total = min(total, request.limit)
                log.debug("Chunked iteration sized", extra={"total": total, "page_size": page_size})
            if not page:
                break

            last_pk = page[-1][schema.pk]
            fetched += len(page)
            short_page = len(page) < want
            for row in page:
                row.pop(_TOTAL_KEY, None)
                yield LiveRecord.from_row(row, schema, refetch)
            del page

            if short_page or fetched >= total:
                break


__all__ = ["ChunkedIterationStrategy"]
