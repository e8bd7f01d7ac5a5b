"""
MigrationRunner - Drives one record family from the first page to the last.

Each iteration of the loop:

1. Honor a pending shutdown (flush state, return PAUSED)
2. Read the next page below the cursor; an empty page ends the run
3. Look up related rows for the page (secrets, statistics)
4. Filter out rows that must not be written
5. Transform the rest and write them in chunks
6. Advance the cursor past the whole page, save the identity map, then
   save the checkpoint

A batch that raises a recoverable MigrationError (such as a failed chunk
write) is counted in ``error_count`` and the cursor still moves on. Fatal
errors, and exceptions that are not MigrationErrors, end the run as FAILED
with the checkpoint left at its last saved state. The summary message then
carries the error's suggested action.

Usage:
    >>> runners = create_runners(default_families(), source, target, Path("state"))
    >>> summaries = await run_families(runners)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from pathlib import Path

from legacymigrate.config import RunConfig
from legacymigrate.exceptions import BatchWriteError, MigrationError
from legacymigrate.families.base import RecordFamily
from legacymigrate.filtering import ExistenceFilter
from legacymigrate.models import MigrationProgress, MigrationSummary, RunOutcome, SourceRecord
from legacymigrate.observability import (
    ATTR_BATCH_NUMBER,
    ATTR_BATCH_SIZE,
    ATTR_FAMILY,
    ATTR_RECORD_COUNT,
    ATTR_SKIPPED_COUNT,
    Tracer,
    create_tracer,
)
from legacymigrate.reader import CursorReader
from legacymigrate.repositories.checkpoint import CheckpointStore, FileCheckpointStore
from legacymigrate.repositories.identity_map import (
    FileIdentityMapStore,
    IdentityMap,
    IdentityMapStore,
)
from legacymigrate.shutdown import ShutdownCoordinator
from legacymigrate.stores.interface import SourceStore, TargetStore
from legacymigrate.transform import generate_id
from legacymigrate.writer import ChunkedWriter

logger = logging.getLogger(__name__)


class MigrationRunner:
    """
    Runs the migration loop for one record family.

    Example:
        >>> runner = MigrationRunner(
        ...     UserFamily(),
        ...     source,
        ...     target,
        ...     FileCheckpointStore(Path("state/user-progress.json")),
        ...     FileIdentityMapStore(Path("state/user-id-map.json")),
        ...     config=RunConfig(batch_size=5000, insert_chunk_size=1000),
        ... )
        >>> summary = await runner.run()
        >>> print(summary.format())
    """

    def __init__(
        self,
        family: RecordFamily,
        source: SourceStore,
        target: TargetStore,
        checkpoints: CheckpointStore,
        identities: IdentityMapStore,
        *,
        config: RunConfig | None = None,
        dependencies: IdentityMapStore | None = None,
        shutdown: ShutdownCoordinator | None = None,
        id_factory: Callable[[], str] = generate_id,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Args:
            family: Record family to migrate
            source: Legacy store
            target: Target store
            checkpoints: Checkpoint store of this family
            identities: Identity map store of this family
            config: Batch and chunk sizes
            dependencies: Identity map store of family.depends_on, read only
            shutdown: Shutdown token observed between batches
            id_factory: Generates new target ids
            tracer: Optional custom Tracer
            enable_tracing: Whether to create OpenTelemetry spans
        """
        if family.depends_on and dependencies is None:
            raise ValueError(f"{family.name} depends on {family.depends_on}; pass its identity map store")
        self._family = family
        self._source = source
        self._target = target
        self._checkpoints = checkpoints
        self._identities = identities
        self._dependencies = dependencies
        self._config = config or RunConfig()
        self._shutdown = shutdown or ShutdownCoordinator()
        self._id_factory = id_factory
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled

    @property
    def family(self) -> RecordFamily:
        return self._family

    @property
    def shutdown(self) -> ShutdownCoordinator:
        return self._shutdown

    async def run(self) -> MigrationSummary:
        """
        Migrate until the source is exhausted, shutdown is honored, or a
        fatal error occurs.

        Returns:
            Summary with outcome COMPLETED, PAUSED or FAILED. Never raises
            for errors of the migration itself.
        """
        start = time.monotonic()
        progress = MigrationProgress()
        identity_map: IdentityMap | None = None
        batches = 0

        def summary(outcome: RunOutcome, error_message: str | None = None) -> MigrationSummary:
            return MigrationSummary.from_progress(
                self._family.name,
                outcome,
                progress,
                time.monotonic() - start,
                batches=batches,
                error_message=error_message,
            )

        with self._tracer.span(
            "legacymigrate.runner.run",
            {ATTR_FAMILY: self._family.name, ATTR_BATCH_SIZE: self._config.batch_size},
        ):
            try:
                progress = await self._checkpoints.load() or MigrationProgress()
                identity_map = await self._identities.load()
                dependency_map = await self._dependencies.load() if self._dependencies else None

                if progress.cursor:
                    logger.info(
                        "Resuming %s migration from %s (%d rows processed so far)",
                        self._family.name,
                        progress.cursor.to_dict(),
                        progress.total_processed,
                    )
                else:
                    logger.info("Starting %s migration", self._family.name)

                reader = CursorReader(
                    self._source,
                    self._family.source_table,
                    family=self._family.name,
                    tracer=self._tracer,
                )
                existence = ExistenceFilter(
                    self._family,
                    self._target,
                    identity_map,
                    dependency_map,
                    tracer=self._tracer,
                )
                writer = ChunkedWriter(
                    self._target,
                    identity_map,
                    family=self._family.name,
                    concurrency=self._config.write_concurrency,
                    tracer=self._tracer,
                )

                while True:
                    if self._shutdown.shutdown_requested:
                        await self._flush(progress, identity_map)
                        return summary(RunOutcome.PAUSED)

                    batch = await reader.fetch_next_batch(progress.cursor, self._config.batch_size)
                    if not batch:
                        break
                    batches += 1
                    await self._process_batch(batches, batch, progress, reader, existence, writer)
                    await self._identities.save(identity_map)
                    await self._checkpoints.save(progress)

                await self._identities.save(identity_map)
                await self._checkpoints.clear()
                logger.info(
                    "Finished %s migration: %d created, %d skipped, %d failed batches",
                    self._family.name,
                    progress.created_count,
                    progress.skipped_count,
                    progress.error_count,
                )
                return summary(RunOutcome.COMPLETED)

            except Exception as e:
                level = e.severity.log_level if isinstance(e, MigrationError) else logging.CRITICAL
                logger.log(
                    level,
                    "%s migration failed: %s",
                    self._family.name,
                    e,
                    exc_info=True,
                    extra={"family": self._family.name},
                )
                await self._save_identities_after_failure(identity_map)
                message = str(e)
                if isinstance(e, MigrationError):
                    message = f"{message} ({e.suggested_action})"
                return summary(RunOutcome.FAILED, message)

    async def _process_batch(
        self,
        number: int,
        batch: Sequence[SourceRecord],
        progress: MigrationProgress,
        reader: CursorReader,
        existence: ExistenceFilter,
        writer: ChunkedWriter,
    ) -> None:
        family = self._family
        with self._tracer.span(
            "legacymigrate.runner.batch",
            {ATTR_FAMILY: family.name, ATTR_BATCH_NUMBER: number, ATTR_RECORD_COUNT: len(batch)},
        ) as span:
            created = 0
            skipped = 0
            degraded = 0
            try:
                related = {}
                if family.related_table and family.related_column:
                    related = await reader.fetch_related(family.related_table, family.related_column, batch)

                filtered = await existence.filter(batch)
                skipped = len(filtered.skipped)
                progress.skipped_count += skipped
                if span is not None:
                    span.set_attribute(ATTR_SKIPPED_COUNT, skipped)

                targets = []
                for candidate in filtered.eligible:
                    result = family.transform(
                        candidate.record,
                        related.get(candidate.record.id),
                        self._id_factory(),
                        candidate.owner_id,
                    )
                    degraded += result.degraded
                    targets.append(result.target)

                written = await writer.write_chunked(
                    family.target_table,
                    targets,
                    self._config.insert_chunk_size,
                    dependent_tables=family.dependent_tables,
                )
                created = written.written
                progress.created_count += created
                progress.add_dependents(written.dependents)
            except MigrationError as e:
                if e.is_fatal:
                    raise
                progress.error_count += 1
                if isinstance(e, BatchWriteError):
                    created = e.records_written
                    progress.created_count += created
                    progress.add_dependents(e.dependents_written)
                logger.log(
                    e.severity.log_level,
                    "Batch %d of %s failed, moving on: %s",
                    number,
                    family.name,
                    e,
                    extra={"family": family.name, "batch": number, "error_code": e.error_code},
                )

            progress.advance(batch[-1].cursor, len(batch))

        logger.info(
            "Processed %d %s so far (batch %d: %d written, %d skipped, %d with default documents)",
            progress.total_processed,
            family.name,
            number,
            created,
            skipped,
            degraded,
            extra={"family": family.name, "cursor": progress.cursor.to_dict() if progress.cursor else None},
        )

    async def _flush(self, progress: MigrationProgress, identity_map: IdentityMap) -> None:
        self._shutdown.begin_flush()
        await self._identities.save(identity_map)
        await self._checkpoints.save(progress)
        self._shutdown.mark_exited()

    async def _save_identities_after_failure(self, identity_map: IdentityMap | None) -> None:
        """Keep ids of committed chunks even though the checkpoint stays behind."""
        if identity_map is None or not identity_map.dirty:
            return
        try:
            await self._identities.save(identity_map)
        except Exception:
            logger.exception("Failed to save the %s identity map after a failure", self._family.name)


def create_runners(
    families: Sequence[RecordFamily],
    source: SourceStore,
    target: TargetStore,
    state_dir: Path,
    *,
    config: RunConfig | None = None,
    shutdown: ShutdownCoordinator | None = None,
    enable_tracing: bool = True,
) -> list[MigrationRunner]:
    """
    Build file-backed runners for ``families``, in the given order.

    A family that depends on another reads that family's identity-map file,
    which must be named by a family in ``families`` or be the default
    ``<prefix>-id-map.json`` of the dependency.

    Args:
        families: Families to migrate, dependencies first
        source: Legacy store
        target: Target store
        state_dir: Directory of the checkpoint and identity-map files
        config: Batch and chunk sizes
        shutdown: Shared shutdown token
        enable_tracing: Whether to create OpenTelemetry spans
    """
    shutdown = shutdown or ShutdownCoordinator()
    by_name = {family.name: family for family in families}
    runners = []
    for family in families:
        dependencies = None
        if family.depends_on:
            dependency = by_name.get(family.depends_on)
            if dependency is None:
                raise ValueError(f"{family.name} depends on unknown family {family.depends_on}")
            dependencies = FileIdentityMapStore(
                state_dir / dependency.identity_filename,
                family=dependency.name,
                enable_tracing=enable_tracing,
            )
        runners.append(
            MigrationRunner(
                family,
                source,
                target,
                FileCheckpointStore(
                    state_dir / family.checkpoint_filename,
                    family=family.name,
                    enable_tracing=enable_tracing,
                ),
                FileIdentityMapStore(
                    state_dir / family.identity_filename,
                    family=family.name,
                    enable_tracing=enable_tracing,
                ),
                config=config,
                dependencies=dependencies,
                shutdown=shutdown,
                enable_tracing=enable_tracing,
            )
        )
    return runners


async def run_families(runners: Sequence[MigrationRunner]) -> list[MigrationSummary]:
    """
    Run families in order, stopping after the first one that does not complete.

    Returns:
        One summary per runner that ran
    """
    summaries = []
    for runner in runners:
        summary = await runner.run()
        summaries.append(summary)
        if summary.outcome != RunOutcome.COMPLETED:
            logger.warning(
                "Stopping after %s: %s",
                runner.family.name,
                summary.outcome.value,
            )
            break
    return summaries


__all__ = [
    "MigrationRunner",
    "create_runners",
    "run_families",
]
