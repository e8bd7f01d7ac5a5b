"""
Source and target store adapters.

Exports:
    - SourceStore, TargetStore: Abstract interfaces
    - SQLSourceStore, SQLTargetStore: SQLAlchemy async implementations
    - InMemorySourceStore, InMemoryTargetStore: In-memory implementations for tests
"""

from legacymigrate.stores.in_memory import (
    DEFAULT_UNIQUE_KEYS,
    InMemorySourceStore,
    InMemoryTargetStore,
    UniqueViolationError,
)
from legacymigrate.stores.interface import SourceStore, TargetStore
from legacymigrate.stores.sql import SQLSourceStore, SQLTargetStore

__all__ = [
    "SourceStore",
    "TargetStore",
    "SQLSourceStore",
    "SQLTargetStore",
    "InMemorySourceStore",
    "InMemoryTargetStore",
    "UniqueViolationError",
    "DEFAULT_UNIQUE_KEYS",
]
