"""
Checkpoint stores for migration progress.

A checkpoint holds the cursor and counters of one record family. Loading an
existing checkpoint at startup means the run resumes from that exact cursor.
The checkpoint is cleared only after the source is exhausted; on every other
exit it stays on disk as the resumption point.
"""

import asyncio
import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from legacymigrate.exceptions import CheckpointCorruptError
from legacymigrate.models import MigrationProgress
from legacymigrate.observability import ATTR_FAMILY, Tracer, create_tracer
from legacymigrate.repositories._files import atomic_write_text, read_text_if_exists
from legacymigrate.serialization import json_dumps, json_loads

logger = logging.getLogger(__name__)


@runtime_checkable
class CheckpointStore(Protocol):
    """
    Protocol for checkpoint stores.

    Implementations persist a single MigrationProgress per record family.
    """

    async def load(self) -> MigrationProgress | None:
        """
        Load the saved progress.

        Returns:
            The saved progress, or None if no checkpoint exists

        Raises:
            CheckpointCorruptError: If a checkpoint exists but cannot be parsed
        """
        ...

    async def save(self, progress: MigrationProgress) -> None:
        """
        Persist progress, stamping its last_updated time.

        Args:
            progress: Current progress of the run
        """
        ...

    async def clear(self) -> None:
        """Delete the checkpoint. Safe to call when none exists."""
        ...


class FileCheckpointStore:
    """
    JSON file implementation of the checkpoint store.

    Example:
        >>> store = FileCheckpointStore(Path("scripts/migration/user-progress.json"))
        >>> progress = await store.load() or MigrationProgress()
        >>> await store.save(progress)
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

    async def load(self) -> MigrationProgress | None:
        with self._tracer.span(
            "legacymigrate.checkpoint.load",
            {ATTR_FAMILY: self.family or ""},
        ):
            text = await asyncio.to_thread(read_text_if_exists, self.path)
            if text is None:
                logger.info("No checkpoint at %s, starting from the beginning", self.path)
                return None

            try:
                progress = MigrationProgress.from_dict(json_loads(text))
            except (ValueError, KeyError, TypeError) as e:
                raise CheckpointCorruptError(str(self.path), str(e), family=self.family) from e

            logger.info(
                "Found checkpoint %s (last updated %s), resuming after %s",
                self.path,
                progress.last_updated.isoformat() if progress.last_updated else "unknown",
                progress.cursor,
            )
            return progress

    async def save(self, progress: MigrationProgress) -> None:
        with self._tracer.span(
            "legacymigrate.checkpoint.save",
            {ATTR_FAMILY: self.family or ""},
        ):
            progress.touch()
            text = json_dumps(progress.to_dict(), indent=2)
            await asyncio.to_thread(atomic_write_text, self.path, text)
            logger.debug("Checkpoint saved at %s", progress.cursor)

    async def clear(self) -> None:
        with self._tracer.span(
            "legacymigrate.checkpoint.clear",
            {ATTR_FAMILY: self.family or ""},
        ):
            try:
                await asyncio.to_thread(self.path.unlink)
            except FileNotFoundError:
                return
            logger.info("Checkpoint %s cleared", self.path)


class InMemoryCheckpointStore:
    """
    In-memory implementation of the checkpoint store for testing.

    Every saved snapshot is kept in ``history`` so tests can assert on the
    sequence of persisted cursors.

    Example:
        >>> store = InMemoryCheckpointStore()
        >>> await store.save(MigrationProgress())
        >>> assert await store.load() is not None
    """

    def __init__(self, initial: MigrationProgress | None = None) -> None:
        self._data = initial.to_dict() if initial else None
        self.history: list[MigrationProgress] = []
        self.cleared = False

    async def load(self) -> MigrationProgress | None:
        if self._data is None:
            return None
        return MigrationProgress.from_dict(self._data)

    async def save(self, progress: MigrationProgress) -> None:
        progress.touch()
        self._data = progress.to_dict()
        self.history.append(MigrationProgress.from_dict(self._data))
        self.cleared = False

    async def clear(self) -> None:
        self._data = None
        self.cleared = True

    @property
    def exists(self) -> bool:
        return self._data is not None


__all__ = [
    "CheckpointStore",
    "FileCheckpointStore",
    "InMemoryCheckpointStore",
]
