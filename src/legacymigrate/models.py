"""
Data models for the legacymigrate engine.

Enums:
    - SkipReason: Why the existence filter dropped a source row
    - RunOutcome: Terminal state of one family's run

Core Models:
    - Cursor: Composite (timestamp, id) pagination key
    - SourceRecord: Read-only row from the legacy store
    - TargetRecord: Transformed row for the target store, plus dependent rows
    - MigrationProgress: Persisted checkpoint for one record family
    - MigrationSummary: Final report of a run
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class SkipReason(Enum):
    """
    Reasons a source row is skipped instead of written.

    Checks are applied in declaration order and the first match wins.
    """

    DEPENDENCY_MISSING = "dependency_missing"
    """Owner has no entry in the dependency identity map or no row in the target."""

    NATURAL_KEY_EXISTS = "natural_key_exists"
    """A row with the same natural key already exists in the target (or earlier in the batch)."""

    ALREADY_MIGRATED = "already_migrated"
    """Legacy id is already a key of this family's identity map."""


class RunOutcome(Enum):
    """
    Terminal states of a family run.

    Attributes:
        COMPLETED: Source exhausted, checkpoint cleared.
        PAUSED: Shutdown honored between batches, checkpoint retained.
        FAILED: Unrecoverable error, checkpoint retained for resumption.
    """

    COMPLETED = "completed"
    PAUSED = "paused"
    FAILED = "failed"

    @property
    def exit_code(self) -> int:
        """Process exit code: zero for completion and for an intentional pause."""
        return 1 if self == RunOutcome.FAILED else 0


@dataclass(frozen=True, order=True)
class Cursor:
    """
    Position of the last processed source row.

    Ordering is the tuple order (timestamp, id), matching the source query
    ``ORDER BY created_at DESC, id DESC``. The next page holds rows strictly
    less than the cursor.
    """

    timestamp: datetime
    id: str

    @classmethod
    def of(cls, record: SourceRecord) -> Cursor:
        return cls(timestamp=record.created_at, id=record.id)

    def to_dict(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp.isoformat(), "id": self.id}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Cursor:
        """
        Restore a cursor written by to_dict.

        Raises:
            KeyError: If a component is missing.
            ValueError: If the timestamp is not ISO 8601.
        """
        timestamp = data["timestamp"]
        if not isinstance(timestamp, datetime):
            timestamp = datetime.fromisoformat(str(timestamp))
        return cls(timestamp=timestamp, id=str(data["id"]))


@dataclass(frozen=True)
class SourceRecord:
    """
    A row read from the legacy store.

    Attributes:
        id: Immutable legacy identifier.
        created_at: Pagination timestamp.
        data: All selected columns, keyed by legacy column name.
    """

    id: str
    created_at: datetime
    data: Mapping[str, Any] = field(default_factory=dict, compare=False)

    @property
    def cursor(self) -> Cursor:
        return Cursor.of(self)

    def get(self, column: str, default: Any = None) -> Any:
        value = self.data.get(column, default)
        return default if value is None else value


@dataclass(frozen=True)
class TargetRecord:
    """
    A validated row ready for the target store.

    Attributes:
        legacy_id: Id of the source row this record came from.
        new_id: Freshly generated target identifier.
        values: Column values for the primary table.
        dependents: Rows for dependent tables keyed by table name, written
            best-effort after the primary row.
    """

    legacy_id: str
    new_id: str
    values: dict[str, Any]
    dependents: dict[str, list[dict[str, Any]]] = field(default_factory=dict)


@dataclass
class MigrationProgress:
    """
    Checkpoint for one record family.

    Mutated after every batch, persisted by the checkpoint store and deleted
    once the source is exhausted.

    Attributes:
        cursor: Key of the last row advanced past, None before the first batch.
        created_count: Primary rows written.
        skipped_count: Rows dropped by the existence filter.
        error_count: Batches whose write failed.
        total_processed: Rows the cursor has advanced past.
        dependents_created: Best-effort dependent rows written, per table.
        last_updated: When the checkpoint was last saved.
    """

    cursor: Cursor | None = None
    created_count: int = 0
    skipped_count: int = 0
    error_count: int = 0
    total_processed: int = 0
    dependents_created: dict[str, int] = field(default_factory=dict)
    last_updated: datetime | None = None

    def advance(self, cursor: Cursor, rows: int) -> None:
        """Move the cursor past a batch of ``rows`` source rows."""
        if self.cursor is not None and not cursor < self.cursor:
            raise ValueError(f"Cursor must strictly decrease: {cursor} is not below {self.cursor}")
        self.cursor = cursor
        self.total_processed += rows

    def add_dependents(self, counts: Mapping[str, int]) -> None:
        for table, count in counts.items():
            self.dependents_created[table] = self.dependents_created.get(table, 0) + count

    def touch(self) -> None:
        self.last_updated = datetime.now(UTC)

    def to_dict(self) -> dict[str, Any]:
        return {
            "cursor": self.cursor.to_dict() if self.cursor else None,
            "createdCount": self.created_count,
            "skippedCount": self.skipped_count,
            "errorCount": self.error_count,
            "totalProcessed": self.total_processed,
            "dependentsCreated": dict(self.dependents_created),
            "lastUpdated": self.last_updated.isoformat() if self.last_updated else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> MigrationProgress:
        """
        Restore progress written by to_dict.

        Raises:
            KeyError, TypeError, ValueError: If the document is malformed.
        """
        if not isinstance(data, Mapping):
            raise TypeError(f"Expected a JSON object, got {type(data).__name__}")
        cursor = data.get("cursor")
        last_updated = data.get("lastUpdated")
        return cls(
            cursor=Cursor.from_dict(cursor) if cursor else None,
            created_count=int(data.get("createdCount", 0)),
            skipped_count=int(data.get("skippedCount", 0)),
            error_count=int(data.get("errorCount", 0)),
            total_processed=int(data.get("totalProcessed", 0)),
            dependents_created={
                str(k): int(v) for k, v in (data.get("dependentsCreated") or {}).items()
            },
            last_updated=datetime.fromisoformat(last_updated) if last_updated else None,
        )


@dataclass(frozen=True)
class MigrationSummary:
    """
    Final report of one family's run.

    Informational only; format() renders the console report.
    """

    family: str
    outcome: RunOutcome
    created_count: int
    skipped_count: int
    error_count: int
    total_processed: int
    elapsed_seconds: float
    dependents_created: dict[str, int] = field(default_factory=dict)
    batches: int = 0
    error_message: str | None = None

    @classmethod
    def from_progress(
        cls,
        family: str,
        outcome: RunOutcome,
        progress: MigrationProgress,
        elapsed_seconds: float,
        *,
        batches: int = 0,
        error_message: str | None = None,
    ) -> MigrationSummary:
        return cls(
            family=family,
            outcome=outcome,
            created_count=progress.created_count,
            skipped_count=progress.skipped_count,
            error_count=progress.error_count,
            total_processed=progress.total_processed,
            elapsed_seconds=elapsed_seconds,
            dependents_created=dict(progress.dependents_created),
            batches=batches,
            error_message=error_message,
        )

    def format(self) -> str:
        lines = [
            f"Migration summary ({self.family}): {self.outcome.value}",
            f"   Created: {self.created_count}",
        ]
        for table, count in sorted(self.dependents_created.items()):
            lines.append(f"   {table} created: {count}")
        lines += [
            f"   Skipped: {self.skipped_count}",
            f"   Errored batches: {self.error_count}",
            f"   Total processed: {self.total_processed}",
            f"   Elapsed: {self.elapsed_seconds:.2f}s",
        ]
        if self.error_message:
            lines.append(f"   Error: {self.error_message}")
        if self.outcome == RunOutcome.PAUSED:
            lines.append("   Paused. Run again to resume.")
        return "\n".join(lines)


__all__ = [
    "SkipReason",
    "RunOutcome",
    "Cursor",
    "SourceRecord",
    "TargetRecord",
    "MigrationProgress",
    "MigrationSummary",
]
