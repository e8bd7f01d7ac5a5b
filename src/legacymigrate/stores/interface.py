"""
Store interfaces for the legacy source and the new target database.

The engine only talks to the databases through these two abstractions:

- SourceStore: read-only keyset pagination plus a secondary lookup by
  foreign key scoped to the ids of the current batch.
- TargetStore: bulk existence queries by natural key and bulk inserts.

Bulk membership ("column IN values") is a capability of the adapter; how
the values are bound or escaped is the adapter's concern.
"""

from abc import ABC, abstractmethod
from collections.abc import Collection, Mapping, Sequence
from typing import Any

from legacymigrate.models import Cursor, SourceRecord


class SourceStore(ABC):
    """
    Read-only access to the legacy store.

    Pages are ordered by (created_at DESC, id DESC). The first page (cursor
    None) has no predicate; every later page holds only rows strictly less
    than the cursor. An empty page means the source is exhausted.
    """

    @abstractmethod
    async def fetch_page(
        self,
        table: str,
        cursor: Cursor | None,
        limit: int,
    ) -> list[SourceRecord]:
        """
        Read the next page of ``table`` below ``cursor``.

        Args:
            table: Legacy table name
            cursor: Key of the last processed row, None for the first page
            limit: Maximum rows to return

        Returns:
            Rows in strictly decreasing (created_at, id) order
        """
        pass

    @abstractmethod
    async def fetch_by_foreign_key(
        self,
        table: str,
        column: str,
        ids: Collection[str],
    ) -> list[dict[str, Any]]:
        """
        Read dependent rows whose ``column`` is one of ``ids``.

        Args:
            table: Legacy table name (e.g. "Secrets")
            column: Foreign key column (e.g. "userId")
            ids: Ids from the current batch

        Returns:
            Matching rows as column -> value dicts
        """
        pass

    @abstractmethod
    async def ping(self) -> None:
        """Run a trivial query; raises if the store is unreachable."""
        pass


class TargetStore(ABC):
    """Access to the new database."""

    @abstractmethod
    async def find_any(
        self,
        table: str,
        match: Mapping[str, Collection[Any]],
    ) -> list[dict[str, Any]]:
        """
        Return rows where ANY of the ``column IN values`` predicates holds.

        Empty value collections are ignored; if all are empty, returns [].
        """
        pass

    @abstractmethod
    async def find_all(
        self,
        table: str,
        match: Mapping[str, Collection[Any]],
    ) -> list[dict[str, Any]]:
        """
        Return rows where ALL of the ``column IN values`` predicates hold.

        If any value collection is empty, returns [].
        """
        pass

    @abstractmethod
    async def insert_many(
        self,
        table: str,
        rows: Sequence[Mapping[str, Any]],
    ) -> None:
        """
        Insert ``rows`` into ``table`` in one call.

        Either all rows are inserted or the call raises.
        """
        pass

    @abstractmethod
    async def ping(self) -> None:
        """Run a trivial query; raises if the store is unreachable."""
        pass


__all__ = [
    "SourceStore",
    "TargetStore",
]
