"""
Identity maps: legacy id -> new id, one per record family.

The identity map is the authoritative record of which legacy rows have
already been migrated, independent of the checkpoint. It is loaded fully
at startup (migration universes are bounded), appended to after every
successful chunk insert, and persisted after every batch and on shutdown.
Entries are never removed and the file is never cleared.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Protocol, runtime_checkable

from legacymigrate.exceptions import CheckpointCorruptError, IdentityConflictError
from legacymigrate.observability import ATTR_FAMILY, ATTR_RECORD_COUNT, Tracer, create_tracer
from legacymigrate.repositories._files import atomic_write_text, read_text_if_exists
from legacymigrate.serialization import json_dumps, json_loads

logger = logging.getLogger(__name__)


class IdentityMap:
    """
    Ordered in-memory cache of a persisted legacy id -> new id mapping.

    Example:
        >>> ids = IdentityMap()
        >>> ids.record("legacy-1", "new-1")
        >>> "legacy-1" in ids
        True
        >>> ids.get("legacy-1")
        'new-1'
    """

    def __init__(self, entries: Mapping[str, str] | None = None) -> None:
        self._entries: dict[str, str] = dict(entries or {})
        self._dirty = False

    def get(self, legacy_id: str) -> str | None:
        return self._entries.get(legacy_id)

    def __contains__(self, legacy_id: object) -> bool:
        return legacy_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def record(self, legacy_id: str, new_id: str) -> None:
        """
        Add a mapping.

        Re-recording the same pair is a no-op.

        Raises:
            IdentityConflictError: If legacy_id is already mapped elsewhere.
        """
        existing = self._entries.get(legacy_id)
        if existing is not None:
            if existing != new_id:
                raise IdentityConflictError(legacy_id, existing, new_id)
            return
        self._entries[legacy_id] = new_id
        self._dirty = True

    def snapshot(self) -> dict[str, str]:
        return dict(self._entries)

    @property
    def dirty(self) -> bool:
        """True if entries were added since the last mark_clean()."""
        return self._dirty

    def mark_clean(self) -> None:
        self._dirty = False


@runtime_checkable
class IdentityMapStore(Protocol):
    """Protocol for identity-map persistence."""

    async def load(self) -> IdentityMap:
        """
        Load the persisted map; an absent map loads as empty.

        Raises:
            CheckpointCorruptError: If persisted data exists but cannot be parsed
        """
        ...

    async def save(self, identity_map: IdentityMap) -> None:
        """Persist the full snapshot of ``identity_map``."""
        ...


class FileIdentityMapStore:
    """
    JSON file implementation: a single object of ``{legacyId: newId}`` pairs.

    Example:
        >>> store = FileIdentityMapStore(Path("scripts/migration/user-id-map.json"))
        >>> ids = await store.load()
    """

    def __init__(
        self,
        path: Path | str,
        *,
        family: str | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self.path = Path(path)
        self.family = family

    async def load(self) -> IdentityMap:
        with self._tracer.span(
            "legacymigrate.identity_map.load",
            {ATTR_FAMILY: self.family or ""},
        ):
            text = await asyncio.to_thread(read_text_if_exists, self.path)
            if text is None:
                logger.info("No identity map at %s, starting empty", self.path)
                return IdentityMap()

            try:
                data = json_loads(text)
            except ValueError as e:
                raise CheckpointCorruptError(str(self.path), str(e), family=self.family) from e
            if not isinstance(data, dict) or not all(
                isinstance(k, str) and isinstance(v, str) for k, v in data.items()
            ):
                raise CheckpointCorruptError(
                    str(self.path),
                    "expected a JSON object of string pairs",
                    family=self.family,
                )

            logger.info("Loaded %d identity mappings from %s", len(data), self.path)
            return IdentityMap(data)

    async def save(self, identity_map: IdentityMap) -> None:
        with self._tracer.span(
            "legacymigrate.identity_map.save",
            {ATTR_FAMILY: self.family or "", ATTR_RECORD_COUNT: len(identity_map)},
        ):
            text = json_dumps(identity_map.snapshot(), indent="\t")
            await asyncio.to_thread(atomic_write_text, self.path, text)
            identity_map.mark_clean()


class InMemoryIdentityMapStore:
    """
    In-memory implementation of the identity-map store for testing.

    Example:
        >>> store = InMemoryIdentityMapStore({"legacy-1": "new-1"})
        >>> ids = await store.load()
        >>> assert ids.get("legacy-1") == "new-1"
    """

    def __init__(self, entries: Mapping[str, str] | None = None) -> None:
        self.entries: dict[str, str] = dict(entries or {})
        self.save_count = 0

    async def load(self) -> IdentityMap:
        return IdentityMap(self.entries)

    async def save(self, identity_map: IdentityMap) -> None:
        self.entries = identity_map.snapshot()
        self.save_count += 1
        identity_map.mark_clean()


__all__ = [
    "IdentityMap",
    "IdentityMapStore",
    "FileIdentityMapStore",
    "InMemoryIdentityMapStore",
]
