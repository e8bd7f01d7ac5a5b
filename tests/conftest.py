"""
Shared pytest fixtures for the legacymigrate tests.

This module provides:
- Legacy row fixtures (rows, populate_users)
- Store fixtures (source, target, checkpoint_store, identity_store,
  user_identity_store)
- Tracing fixtures (mock_tracer)
- SQLite fixtures (sqlite_url, source_engine, target_engine) for the
  integration tests
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from legacymigrate.observability import MockTracer
from legacymigrate.repositories.checkpoint import InMemoryCheckpointStore
from legacymigrate.repositories.identity_map import InMemoryIdentityMapStore
from legacymigrate.stores.in_memory import InMemorySourceStore, InMemoryTargetStore
from legacymigrate.stores.schema import legacy_metadata, target_metadata
from tests.fixtures import LegacyRows

# ============================================================================
# Legacy row fixtures
# ============================================================================


@pytest.fixture
def rows() -> LegacyRows:
    """Factory for legacy rows with timezone-aware timestamps."""
    return LegacyRows()


@pytest.fixture
def populate_users(
    source: InMemorySourceStore, rows: LegacyRows
) -> Callable[[int], list[dict[str, Any]]]:
    """Add n legacy users (each with a Secrets row) to the source; returns the user rows."""

    def populate(n: int) -> list[dict[str, Any]]:
        users = []
        for _ in range(n):
            user = rows.user()
            source.add("User", user)
            source.add("Secrets", rows.secrets(user["id"]))
            users.append(user)
        return users

    return populate


# ============================================================================
# Store fixtures
# ============================================================================


@pytest.fixture
def source() -> InMemorySourceStore:
    """Empty in-memory legacy store."""
    return InMemorySourceStore()


@pytest.fixture
def target() -> InMemoryTargetStore:
    """Empty in-memory target store with the target's unique constraints."""
    return InMemoryTargetStore()


@pytest.fixture
def checkpoint_store() -> InMemoryCheckpointStore:
    """Checkpoint store that records every saved snapshot."""
    return InMemoryCheckpointStore()


@pytest.fixture
def identity_store() -> InMemoryIdentityMapStore:
    """Identity map store of the family under test."""
    return InMemoryIdentityMapStore()


@pytest.fixture
def user_identity_store() -> InMemoryIdentityMapStore:
    """Identity map store of the users family, read by resume runs."""
    return InMemoryIdentityMapStore()


# ============================================================================
# Tracing fixtures
# ============================================================================


@pytest.fixture
def mock_tracer() -> MockTracer:
    """Tracer that records span names and attributes."""
    return MockTracer()


# ============================================================================
# SQLite fixtures
# ============================================================================


@pytest.fixture
def sqlite_url(tmp_path: Path) -> Callable[[str], str]:
    """
    Build file-backed SQLite URLs under tmp_path.

    In-memory SQLite databases are private to one connection, so the
    integration tests use files.
    """

    def build(name: str) -> str:
        return f"sqlite+aiosqlite:///{tmp_path / name}.db"

    return build


@pytest_asyncio.fixture
async def source_engine(sqlite_url: Callable[[str], str]) -> AsyncGenerator[AsyncEngine, None]:
    """AsyncEngine on a fresh legacy schema."""
    engine = create_async_engine(sqlite_url("legacy"))
    async with engine.begin() as conn:
        await conn.run_sync(legacy_metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def target_engine(sqlite_url: Callable[[str], str]) -> AsyncGenerator[AsyncEngine, None]:
    """AsyncEngine on a fresh target schema."""
    engine = create_async_engine(sqlite_url("target"))
    async with engine.begin() as conn:
        await conn.run_sync(target_metadata.create_all)
    yield engine
    await engine.dispose()
