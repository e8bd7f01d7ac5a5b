"""
SQLAlchemy implementations of the source and target stores.

Both stores run on an AsyncEngine (asyncpg in production, aiosqlite in
tests) and build statements with SQLAlchemy Core against the tables in
``legacymigrate.stores.schema``. Bulk membership is expressed with
``column.in_(values)``, which SQLAlchemy binds as an expanding parameter.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Mapping, Sequence
from typing import Any

from sqlalchemy import MetaData, Select, Table, and_, or_, select, text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from legacymigrate.models import Cursor, SourceRecord
from legacymigrate.observability import (
    ATTR_CURSOR_ID,
    ATTR_CURSOR_TIMESTAMP,
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_DB_TABLE,
    ATTR_RECORD_COUNT,
    Tracer,
    create_tracer,
)
from legacymigrate.stores._connection import execute_with_connection
from legacymigrate.stores.interface import SourceStore, TargetStore
from legacymigrate.stores.schema import legacy_metadata, target_metadata

logger = logging.getLogger(__name__)


def _db_system(conn: AsyncConnection | AsyncEngine) -> str:
    return conn.dialect.name


class SQLSourceStore(SourceStore):
    """
    Read-only legacy store on SQLAlchemy.

    Example:
        >>> engine = create_async_engine(settings.source_database_url)
        >>> source = SQLSourceStore(engine)
        >>> page = await source.fetch_page("User", None, 5000)
    """

    def __init__(
        self,
        conn: AsyncConnection | AsyncEngine,
        *,
        metadata: MetaData = legacy_metadata,
        created_column: str = "createdAt",
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Args:
            conn: Engine or connection for the legacy database
            metadata: Table definitions to read from
            created_column: Name of the pagination timestamp column
            tracer: Optional custom Tracer
            enable_tracing: Whether to create OpenTelemetry spans
        """
        self._conn = conn
        self._metadata = metadata
        self._created_column = created_column
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    def _table(self, name: str) -> Table:
        return self._metadata.tables[name]

    def _page_query(self, table: str, cursor: Cursor | None, limit: int) -> Select:
        t = self._table(table)
        created = t.c[self._created_column]
        # Cursor ids compare by code point; PostgreSQL's default collation does not.
        row_id = t.c.id.collate("C") if _db_system(self._conn) == "postgresql" else t.c.id
        stmt = select(t).order_by(created.desc(), row_id.desc()).limit(limit)
        if cursor is not None:
            stmt = stmt.where(
                or_(
                    created < cursor.timestamp,
                    and_(created == cursor.timestamp, row_id < cursor.id),
                )
            )
        return stmt

    async def fetch_page(
        self,
        table: str,
        cursor: Cursor | None,
        limit: int,
    ) -> list[SourceRecord]:
        stmt = self._page_query(table, cursor, limit)

        with self._tracer.span(
            "legacymigrate.source.fetch_page",
            {
                ATTR_DB_SYSTEM: _db_system(self._conn),
                ATTR_DB_OPERATION: "SELECT",
                ATTR_DB_TABLE: table,
                ATTR_CURSOR_TIMESTAMP: cursor.timestamp.isoformat() if cursor else "",
                ATTR_CURSOR_ID: cursor.id if cursor else "",
            },
        ):
            async with execute_with_connection(self._conn, transactional=False) as conn:
                result = await conn.execute(stmt)
                rows = result.mappings().all()

        return [
            SourceRecord(id=str(row["id"]), created_at=row[self._created_column], data=dict(row))
            for row in rows
        ]

    async def fetch_by_foreign_key(
        self,
        table: str,
        column: str,
        ids: Collection[str],
    ) -> list[dict[str, Any]]:
        if not ids:
            return []
        t = self._table(table)
        stmt = select(t).where(t.c[column].in_(list(ids)))

        with self._tracer.span(
            "legacymigrate.source.fetch_related",
            {
                ATTR_DB_SYSTEM: _db_system(self._conn),
                ATTR_DB_OPERATION: "SELECT",
                ATTR_DB_TABLE: table,
                ATTR_RECORD_COUNT: len(ids),
            },
        ):
            async with execute_with_connection(self._conn, transactional=False) as conn:
                result = await conn.execute(stmt)
                return [dict(row) for row in result.mappings().all()]

    async def ping(self) -> None:
        async with execute_with_connection(self._conn, transactional=False) as conn:
            await conn.execute(text("SELECT 1"))


class SQLTargetStore(TargetStore):
    """
    Target store on SQLAlchemy.

    Each insert_many call runs in its own transaction when constructed with
    an AsyncEngine, so a failed chunk leaves earlier chunks committed.
    """

    def __init__(
        self,
        conn: AsyncConnection | AsyncEngine,
        *,
        metadata: MetaData = target_metadata,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._conn = conn
        self._metadata = metadata
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    def _table(self, name: str) -> Table:
        return self._metadata.tables[name]

    async def _select(self, table: str, where: Any, operation: str) -> list[dict[str, Any]]:
        t = self._table(table)
        with self._tracer.span(
            f"legacymigrate.target.{operation}",
            {
                ATTR_DB_SYSTEM: _db_system(self._conn),
                ATTR_DB_OPERATION: "SELECT",
                ATTR_DB_TABLE: table,
            },
        ):
            async with execute_with_connection(self._conn, transactional=False) as conn:
                result = await conn.execute(select(t).where(where))
                return [dict(row) for row in result.mappings().all()]

    async def find_any(
        self,
        table: str,
        match: Mapping[str, Collection[Any]],
    ) -> list[dict[str, Any]]:
        t = self._table(table)
        clauses = [t.c[column].in_(list(values)) for column, values in match.items() if values]
        if not clauses:
            return []
        return await self._select(table, or_(*clauses), "find_any")

    async def find_all(
        self,
        table: str,
        match: Mapping[str, Collection[Any]],
    ) -> list[dict[str, Any]]:
        if not match or any(not values for values in match.values()):
            return []
        t = self._table(table)
        clauses = [t.c[column].in_(list(values)) for column, values in match.items()]
        return await self._select(table, and_(*clauses), "find_all")

    async def insert_many(
        self,
        table: str,
        rows: Sequence[Mapping[str, Any]],
    ) -> None:
        if not rows:
            return
        t = self._table(table)
        with self._tracer.span(
            "legacymigrate.target.insert_many",
            {
                ATTR_DB_SYSTEM: _db_system(self._conn),
                ATTR_DB_OPERATION: "INSERT",
                ATTR_DB_TABLE: table,
                ATTR_RECORD_COUNT: len(rows),
            },
        ):
            async with execute_with_connection(self._conn, transactional=True) as conn:
                await conn.execute(t.insert(), [dict(row) for row in rows])

        logger.debug("Inserted %d rows into %s", len(rows), table)

    async def ping(self) -> None:
        async with execute_with_connection(self._conn, transactional=False) as conn:
            await conn.execute(text("SELECT 1"))


__all__ = [
    "SQLSourceStore",
    "SQLTargetStore",
]
