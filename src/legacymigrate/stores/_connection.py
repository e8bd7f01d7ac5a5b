"""
Connection handling helper for the SQL stores.

``execute_with_connection`` accepts either an AsyncEngine or an
AsyncConnection so the stores can run standalone (one connection per call)
or inside a caller-owned connection, e.g. in tests that share a SQLite
in-memory database.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine


@asynccontextmanager
async def execute_with_connection(
    conn: AsyncConnection | AsyncEngine,
    transactional: bool = True,
) -> AsyncIterator[AsyncConnection]:
    """
    Yield a connection ready for execute() calls.

    Args:
        conn: Database connection or engine
        transactional: If True, wrap in a transaction (begin), otherwise use
            a bare connection (connect). Only applies to an AsyncEngine.

    Example:
        >>> async with execute_with_connection(self._conn) as conn:
        ...     await conn.execute(table.insert(), rows)

    Note:
        - Inserts use transactional=True so one call commits or rolls back as a unit
        - Reads use transactional=False
        - An existing AsyncConnection is yielded as is; the caller manages
          its transaction
    """
    if isinstance(conn, AsyncEngine):
        if transactional:
            async with conn.begin() as connection:
                yield connection
        else:
            async with conn.connect() as connection:
                yield connection
    else:
        yield conn
