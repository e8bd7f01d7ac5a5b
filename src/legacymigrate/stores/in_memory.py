"""
In-memory source and target stores.

Used by the unit tests and for dry runs. Behavior mirrors the SQL stores:
keyset pagination ordered by (created_at DESC, id DESC), bulk IN queries,
and all-or-nothing inserts that enforce the target's unique constraints.

Both stores support failure injection: ``fail_on(operation, error, after=n)``
makes the (n + 1)-th call of ``operation`` raise ``error``.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Collection, Iterable, Mapping, Sequence
from typing import Any

from legacymigrate.models import Cursor, SourceRecord
from legacymigrate.stores.interface import SourceStore, TargetStore

DEFAULT_UNIQUE_KEYS: dict[str, list[tuple[str, ...]]] = {
    "user": [("id",), ("email",), ("username",), ("display_username",)],
    "account": [("id",)],
    "two_factor": [("id",)],
    "resume": [("id",), ("slug", "user_id")],
    "resume_statistics": [("id",), ("resume_id",)],
}
"""Unique constraints of the target schema, per table."""


class UniqueViolationError(Exception):
    """Raised by InMemoryTargetStore when an insert would break a unique constraint."""


class _FailureInjector:
    def __init__(self) -> None:
        self._failures: dict[str, tuple[BaseException, int]] = {}
        self.calls: dict[str, int] = defaultdict(int)

    def fail_on(self, operation: str, error: BaseException, *, after: int = 0) -> None:
        """Make the (after + 1)-th future call of ``operation`` raise ``error``."""
        self._failures[operation] = (error, self.calls[operation] + after)

    def clear_failures(self) -> None:
        self._failures.clear()

    def _check(self, operation: str) -> None:
        call_index = self.calls[operation]
        self.calls[operation] += 1
        failure = self._failures.get(operation)
        if failure is not None and failure[1] == call_index:
            del self._failures[operation]
            raise failure[0]


class InMemorySourceStore(_FailureInjector, SourceStore):
    """
    Legacy store backed by lists of dicts.

    Example:
        >>> source = InMemorySourceStore()
        >>> source.add("User", {"id": "u1", "createdAt": now, "email": "a@x.io"})
    """

    def __init__(
        self,
        tables: Mapping[str, Iterable[Mapping[str, Any]]] | None = None,
        *,
        created_column: str = "createdAt",
    ) -> None:
        super().__init__()
        self._created_column = created_column
        self._tables: dict[str, list[dict[str, Any]]] = defaultdict(list)
        for name, rows in (tables or {}).items():
            for row in rows:
                self.add(name, row)
        self._lock = asyncio.Lock()

    def add(self, table: str, row: Mapping[str, Any]) -> None:
        self._tables[table].append(dict(row))

    def rows(self, table: str) -> list[dict[str, Any]]:
        return list(self._tables.get(table, []))

    async def fetch_page(
        self,
        table: str,
        cursor: Cursor | None,
        limit: int,
    ) -> list[SourceRecord]:
        async with self._lock:
            self._check("fetch_page")
            records = [
                SourceRecord(id=str(row["id"]), created_at=row[self._created_column], data=row)
                for row in self._tables.get(table, [])
            ]
            records.sort(key=lambda r: (r.created_at, r.id), reverse=True)
            if cursor is not None:
                records = [r for r in records if r.cursor < cursor]
            return records[:limit]

    async def fetch_by_foreign_key(
        self,
        table: str,
        column: str,
        ids: Collection[str],
    ) -> list[dict[str, Any]]:
        async with self._lock:
            self._check("fetch_by_foreign_key")
            wanted = set(ids)
            return [dict(row) for row in self._tables.get(table, []) if row.get(column) in wanted]

    async def ping(self) -> None:
        self._check("ping")


class InMemoryTargetStore(_FailureInjector, TargetStore):
    """
    Target store backed by lists of dicts.

    Attributes:
        insert_calls: (table, row count) for every successful insert_many call.
    """

    def __init__(
        self,
        tables: Mapping[str, Iterable[Mapping[str, Any]]] | None = None,
        *,
        unique_keys: Mapping[str, list[tuple[str, ...]]] | None = None,
    ) -> None:
        super().__init__()
        self._unique_keys = dict(DEFAULT_UNIQUE_KEYS if unique_keys is None else unique_keys)
        self._tables: dict[str, list[dict[str, Any]]] = defaultdict(list)
        for name, rows in (tables or {}).items():
            self._tables[name].extend(dict(row) for row in rows)
        self.insert_calls: list[tuple[str, int]] = []
        self._lock = asyncio.Lock()

    def rows(self, table: str) -> list[dict[str, Any]]:
        return list(self._tables.get(table, []))

    def count(self, table: str) -> int:
        return len(self._tables.get(table, []))

    async def find_any(
        self,
        table: str,
        match: Mapping[str, Collection[Any]],
    ) -> list[dict[str, Any]]:
        async with self._lock:
            self._check("find_any")
            sets = {column: set(values) for column, values in match.items() if values}
            if not sets:
                return []
            return [
                dict(row)
                for row in self._tables.get(table, [])
                if any(row.get(column) in values for column, values in sets.items())
            ]

    async def find_all(
        self,
        table: str,
        match: Mapping[str, Collection[Any]],
    ) -> list[dict[str, Any]]:
        async with self._lock:
            self._check("find_all")
            if not match or any(not values for values in match.values()):
                return []
            sets = {column: set(values) for column, values in match.items()}
            return [
                dict(row)
                for row in self._tables.get(table, [])
                if all(row.get(column) in values for column, values in sets.items())
            ]

    async def insert_many(
        self,
        table: str,
        rows: Sequence[Mapping[str, Any]],
    ) -> None:
        async with self._lock:
            self._check(f"insert_many:{table}")
            existing = self._tables[table]
            for key in self._unique_keys.get(table, []):
                seen = {tuple(row.get(c) for c in key) for row in existing}
                for row in rows:
                    value = tuple(row.get(c) for c in key)
                    if value in seen:
                        raise UniqueViolationError(
                            f"duplicate key value violates unique constraint {table}{key}: {value}"
                        )
                    seen.add(value)
            existing.extend(dict(row) for row in rows)
            self.insert_calls.append((table, len(rows)))

    async def ping(self) -> None:
        self._check("ping")


__all__ = [
    "DEFAULT_UNIQUE_KEYS",
    "UniqueViolationError",
    "InMemorySourceStore",
    "InMemoryTargetStore",
]
