"""
CursorReader - Keyset pagination over one legacy table.

Pages are ordered by (created_at DESC, id DESC) and every page after the
first holds only rows strictly less than the cursor. The reader checks that
ordering on every page it returns: a page that repeats or skips ahead of the
cursor would break resumption, so it is treated like any other read failure.

Read errors are fatal and never retried. Guessing a position after a failed
read could silently skip rows.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Sequence
from typing import Any

from legacymigrate.exceptions import CursorOrderError, SourceReadError
from legacymigrate.models import Cursor, SourceRecord
from legacymigrate.observability import (
    ATTR_BATCH_SIZE,
    ATTR_CURSOR_ID,
    ATTR_CURSOR_TIMESTAMP,
    ATTR_FAMILY,
    ATTR_RECORD_COUNT,
    Tracer,
    create_tracer,
)
from legacymigrate.stores.interface import SourceStore

logger = logging.getLogger(__name__)


class CursorReader:
    """
    Reads ordered batches of one legacy table.

    Example:
        >>> reader = CursorReader(source, "User", family="users")
        >>> batch = await reader.fetch_next_batch(None, 5000)
        >>> while batch:
        ...     batch = await reader.fetch_next_batch(batch[-1].cursor, 5000)
    """

    def __init__(
        self,
        source: SourceStore,
        table: str,
        *,
        family: str | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Args:
            source: Legacy store
            table: Legacy table to page through
            family: Record family name, for errors and spans
            tracer: Optional custom Tracer
            enable_tracing: Whether to create OpenTelemetry spans
        """
        self._source = source
        self._table = table
        self._family = family or table
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    @property
    def table(self) -> str:
        return self._table

    async def fetch_next_batch(
        self,
        cursor: Cursor | None,
        limit: int,
    ) -> list[SourceRecord]:
        """
        Fetch the next page below ``cursor``.

        Args:
            cursor: Key of the last processed row; None reads the first page
            limit: Maximum rows (BATCH_SIZE)

        Returns:
            Rows in strictly decreasing (created_at, id) order. Empty when
            the source is exhausted.

        Raises:
            SourceReadError: If the store raises
            CursorOrderError: If the page is out of order
        """
        with self._tracer.span(
            "legacymigrate.reader.fetch_next_batch",
            {
                ATTR_FAMILY: self._family,
                ATTR_BATCH_SIZE: limit,
                ATTR_CURSOR_TIMESTAMP: cursor.timestamp.isoformat() if cursor else "",
                ATTR_CURSOR_ID: cursor.id if cursor else "",
            },
        ):
            try:
                page = await self._source.fetch_page(self._table, cursor, limit)
            except Exception as e:
                raise SourceReadError(
                    f"Failed to read {self._table} page: {e}",
                    family=self._family,
                    cursor_timestamp=cursor.timestamp if cursor else None,
                    cursor_id=cursor.id if cursor else None,
                ) from e

        self._check_order(page, cursor)
        logger.debug(
            "Read %d rows from %s",
            len(page),
            self._table,
            extra={"family": self._family, "cursor": cursor.to_dict() if cursor else None},
        )
        return page

    async def fetch_related(
        self,
        table: str,
        column: str,
        batch: Sequence[SourceRecord],
    ) -> dict[str, dict[str, Any]]:
        """
        Look up dependent rows for a batch by foreign key.

        Args:
            table: Legacy dependent table (e.g. "Secrets")
            column: Foreign key pointing at this reader's table (e.g. "userId")
            batch: The current batch

        Returns:
            Dependent rows keyed by the foreign key value. If several rows
            share a key, the last one wins.

        Raises:
            SourceReadError: If the store raises
        """
        ids = [record.id for record in batch]
        if not ids:
            return {}

        with self._tracer.span(
            "legacymigrate.reader.fetch_related",
            {ATTR_FAMILY: self._family, ATTR_RECORD_COUNT: len(ids)},
        ):
            try:
                rows = await self._source.fetch_by_foreign_key(table, column, _unique(ids))
            except Exception as e:
                raise SourceReadError(
                    f"Failed to read {table} rows for batch: {e}",
                    family=self._family,
                    cursor_timestamp=batch[-1].created_at,
                    cursor_id=batch[-1].id,
                ) from e

        return {str(row[column]): row for row in rows}

    def _check_order(self, page: Sequence[SourceRecord], cursor: Cursor | None) -> None:
        previous = cursor
        for record in page:
            key = record.cursor
            if previous is not None and not key < previous:
                raise CursorOrderError(
                    f"Row {record.id} at {record.created_at.isoformat()} is not below "
                    f"({previous.timestamp.isoformat()}, {previous.id})",
                    family=self._family,
                    cursor_timestamp=cursor.timestamp if cursor else None,
                    cursor_id=cursor.id if cursor else None,
                )
            previous = key


def _unique(ids: Collection[str]) -> list[str]:
    return list(dict.fromkeys(ids))


__all__ = ["CursorReader"]
