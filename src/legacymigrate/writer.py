"""
ChunkedWriter - Writes a batch of target records in wire-size-bounded chunks.

Chunking only keeps each insert under the target's message-size limit:
writing N records as K chunks has the same effect as one insert of N.

Per chunk, in order:
1. Insert the primary rows (one insert_many call)
2. Record the chunk's legacy -> new ids in the identity map
3. Insert the chunk's dependent rows, best-effort

A failed primary insert fails the whole batch (BatchWriteError). Chunks
committed before the failure stay committed and stay in the identity map;
re-running skips them through the natural-key check.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

from legacymigrate.exceptions import BatchWriteError
from legacymigrate.models import TargetRecord
from legacymigrate.observability import (
    ATTR_CHUNK_COUNT,
    ATTR_CHUNK_SIZE,
    ATTR_DB_TABLE,
    ATTR_FAMILY,
    ATTR_RECORD_COUNT,
    Tracer,
    create_tracer,
)
from legacymigrate.repositories.identity_map import IdentityMap
from legacymigrate.stores.interface import TargetStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> Iterator[list[T]]:
    """
    Split ``items`` into consecutive lists of at most ``size`` elements.

    Example:
        >>> list(chunked([1, 2, 3, 4, 5], 2))
        [[1, 2], [3, 4], [5]]
    """
    if size < 1:
        raise ValueError(f"size must be positive, got {size}")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


@dataclass
class WriteResult:
    """
    Outcome of writing one batch.

    Attributes:
        written: Primary rows inserted
        chunks: Primary chunks inserted
        dependents: Dependent rows inserted, per table
    """

    written: int = 0
    chunks: int = 0
    dependents: dict[str, int] = field(default_factory=dict)

    def add_dependents(self, table: str, count: int) -> None:
        self.dependents[table] = self.dependents.get(table, 0) + count


class ChunkedWriter:
    """
    Inserts target records through a TargetStore.

    Example:
        >>> writer = ChunkedWriter(target, identity_map, family="users")
        >>> result = await writer.write_chunked(
        ...     "user", records, chunk_size=1000, dependent_tables=("account",)
        ... )
    """

    def __init__(
        self,
        target: TargetStore,
        identity_map: IdentityMap,
        *,
        family: str | None = None,
        concurrency: int = 1,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Args:
            target: Target store
            identity_map: Identity map updated after every committed chunk
            family: Record family name, for errors and spans
            concurrency: Maximum chunks of one batch inserted in parallel
            tracer: Optional custom Tracer
            enable_tracing: Whether to create OpenTelemetry spans
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be positive, got {concurrency}")
        self._target = target
        self._identity_map = identity_map
        self._family = family
        self._concurrency = concurrency
        self._tracer = tracer or create_tracer(__name__, enable_tracing)

    async def write_chunked(
        self,
        table: str,
        records: Sequence[TargetRecord],
        chunk_size: int,
        *,
        dependent_tables: Sequence[str] = (),
    ) -> WriteResult:
        """
        Insert ``records`` into ``table`` in chunks of ``chunk_size``.

        Returns only after every chunk has finished, also when chunks run
        concurrently.

        Args:
            table: Primary target table
            records: Records in batch order
            chunk_size: Maximum rows per insert call (INSERT_CHUNK_SIZE)
            dependent_tables: Tables of TargetRecord.dependents to write, in order

        Returns:
            WriteResult with counts for the whole batch

        Raises:
            BatchWriteError: If any primary insert fails
        """
        result = WriteResult()
        chunks = list(chunked(records, chunk_size))
        if not chunks:
            return result

        failures: list[tuple[int, Exception]] = []

        async def write_one(index: int, chunk: list[TargetRecord]) -> None:
            if failures:
                return
            try:
                await self._target.insert_many(table, [record.values for record in chunk])
            except Exception as e:
                failures.append((index, e))
                return

            for record in chunk:
                self._identity_map.record(record.legacy_id, record.new_id)
            result.chunks += 1
            result.written += len(chunk)

            for dependent_table in dependent_tables:
                rows = [row for record in chunk for row in record.dependents.get(dependent_table, [])]
                count = await self.write_dependents(dependent_table, rows, chunk_size)
                result.add_dependents(dependent_table, count)

        with self._tracer.span(
            "legacymigrate.writer.write_chunked",
            {
                ATTR_FAMILY: self._family or table,
                ATTR_DB_TABLE: table,
                ATTR_RECORD_COUNT: len(records),
                ATTR_CHUNK_SIZE: chunk_size,
                ATTR_CHUNK_COUNT: len(chunks),
            },
        ):
            if self._concurrency == 1:
                for index, chunk in enumerate(chunks):
                    await write_one(index, chunk)
            else:
                semaphore = asyncio.Semaphore(self._concurrency)

                async def bounded(index: int, chunk: list[TargetRecord]) -> None:
                    async with semaphore:
                        await write_one(index, chunk)

                outcomes = await asyncio.gather(
                    *(bounded(index, chunk) for index, chunk in enumerate(chunks)),
                    return_exceptions=True,
                )
                for outcome in outcomes:
                    if isinstance(outcome, BaseException):
                        raise outcome

        if failures:
            index, error = min(failures, key=lambda failure: failure[0])
            logger.error(
                "Chunk %d of %d into %s failed after %d rows were written",
                index,
                len(chunks),
                table,
                result.written,
                exc_info=error,
                extra={"family": self._family, "table": table, "chunk_index": index},
            )
            raise BatchWriteError(
                str(error),
                family=self._family,
                chunk_index=index,
                chunks_written=result.chunks,
                records_written=result.written,
                dependents_written=result.dependents,
            ) from error

        return result

    async def write_dependents(
        self,
        table: str,
        rows: Sequence[Mapping[str, Any]],
        chunk_size: int,
    ) -> int:
        """
        Insert dependent rows best-effort.

        A failing chunk is logged and stops this call; it never raises.

        Returns:
            Number of rows written
        """
        written = 0
        for chunk in chunked(rows, chunk_size):
            try:
                await self._target.insert_many(table, chunk)
            except Exception:
                logger.warning(
                    "Failed to insert %d %s rows; the primary rows are kept",
                    len(chunk),
                    table,
                    exc_info=True,
                    extra={"family": self._family, "table": table},
                )
                break
            written += len(chunk)
        return written


__all__ = [
    "chunked",
    "WriteResult",
    "ChunkedWriter",
]
