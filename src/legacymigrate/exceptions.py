"""
Exceptions for the legacymigrate engine.

Exception Hierarchy:
    MigrationError (base)
    +-- ConfigurationError
    +-- SourceReadError
    |   +-- CursorOrderError
    +-- TargetReadError
    +-- CheckpointCorruptError
    +-- IdentityConflictError
    +-- BatchWriteError
    +-- DocumentParseError

Every exception carries an ErrorClassification. The runner decides between
aborting the run and moving on to the next batch from the classification's
recoverability, never from message text:

    FATAL        -> abort the run, leave checkpoint/identity files in place
    RECOVERABLE  -> count the batch as errored and continue
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class ErrorSeverity(Enum):
    """
    Severity level of migration errors.

    Attributes:
        CRITICAL: The run cannot continue.
        ERROR: A batch was lost; operators must remediate out of band.
        WARNING: Degraded but migrated.
    """

    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"

    @property
    def log_level(self) -> int:
        """
        Get the corresponding Python logging level.

        Returns:
            Python logging level constant.
        """
        level_map = {
            ErrorSeverity.CRITICAL: logging.CRITICAL,
            ErrorSeverity.ERROR: logging.ERROR,
            ErrorSeverity.WARNING: logging.WARNING,
        }
        return level_map[self]


class ErrorRecoverability(Enum):
    """
    Recoverability classification for migration errors.

    Attributes:
        RECOVERABLE: The run may move on to the next batch.
        FATAL: The run must stop; state files are left for resumption.
    """

    RECOVERABLE = "recoverable"
    FATAL = "fatal"

    @property
    def should_abort(self) -> bool:
        """True only for FATAL errors."""
        return self == ErrorRecoverability.FATAL


@dataclass(frozen=True)
class ErrorClassification:
    """
    Metadata used to route an error.

    Attributes:
        severity: The severity level of the error.
        recoverability: Whether the run may continue.
        error_code: Unique error code for programmatic handling.
        suggested_action: Human-readable guidance for operators.
    """

    severity: ErrorSeverity
    recoverability: ErrorRecoverability
    error_code: str
    suggested_action: str


class MigrationError(Exception):
    """
    Base exception for all migration errors.

    Attributes:
        message: Human-readable error description.
        family: Record family that raised the error, if any.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.CRITICAL,
        recoverability=ErrorRecoverability.FATAL,
        error_code="MIGRATION_ERROR",
        suggested_action="Review the migration logs before re-running",
    )

    def __init__(self, message: str, *, family: str | None = None) -> None:
        self.message = message
        self.family = family
        super().__init__(message)

    def __str__(self) -> str:
        if self.family:
            return f"{self.message} family={self.family}"
        return self.message

    @property
    def classification(self) -> ErrorClassification:
        """Classification metadata for this error type."""
        return self._default_classification

    @property
    def severity(self) -> ErrorSeverity:
        return self.classification.severity

    @property
    def is_fatal(self) -> bool:
        """True if the run must stop on this error."""
        return self.classification.recoverability.should_abort

    @property
    def error_code(self) -> str:
        return self.classification.error_code

    @property
    def suggested_action(self) -> str:
        return self.classification.suggested_action


class ConfigurationError(MigrationError):
    """Raised at startup when required settings are missing or invalid."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.CRITICAL,
        recoverability=ErrorRecoverability.FATAL,
        error_code="CONFIGURATION_ERROR",
        suggested_action="Set PRODUCTION_DATABASE_URL and DATABASE_URL and re-run",
    )


class SourceReadError(MigrationError):
    """
    Raised when the legacy store cannot be read.

    Not retried: guessing a position after a failed read could skip rows.

    Attributes:
        cursor_timestamp: Timestamp component of the cursor in use, if any.
        cursor_id: Id component of the cursor in use, if any.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.CRITICAL,
        recoverability=ErrorRecoverability.FATAL,
        error_code="SOURCE_READ_ERROR",
        suggested_action="Check source connectivity, then re-run to resume from the checkpoint",
    )

    def __init__(
        self,
        message: str,
        *,
        family: str | None = None,
        cursor_timestamp: datetime | None = None,
        cursor_id: str | None = None,
    ) -> None:
        self.cursor_timestamp = cursor_timestamp
        self.cursor_id = cursor_id
        super().__init__(message, family=family)


class CursorOrderError(SourceReadError):
    """Raised when a page is not strictly below the cursor in (created_at, id) order."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.CRITICAL,
        recoverability=ErrorRecoverability.FATAL,
        error_code="CURSOR_ORDER_ERROR",
        suggested_action="Verify the source query orders by created_at DESC, id DESC",
    )


class TargetReadError(MigrationError):
    """
    Raised when a bulk existence query against the target store fails.

    Fatal: without the check the batch could be written twice, and skipping
    it would advance the cursor past rows that were never written.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.CRITICAL,
        recoverability=ErrorRecoverability.FATAL,
        error_code="TARGET_READ_ERROR",
        suggested_action="Check target connectivity, then re-run to resume from the checkpoint",
    )


class CheckpointCorruptError(MigrationError):
    """
    Raised when a checkpoint or identity-map file exists but cannot be parsed.

    Attributes:
        path: Path of the unreadable file.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.CRITICAL,
        recoverability=ErrorRecoverability.FATAL,
        error_code="CHECKPOINT_CORRUPT",
        suggested_action="Inspect or restore the state file; delete it only to restart from scratch",
    )

    def __init__(self, path: str, error: str, *, family: str | None = None) -> None:
        self.path = path
        self.original_error = error
        super().__init__(f"Cannot parse state file {path}: {error}", family=family)


class IdentityConflictError(MigrationError):
    """Raised when a legacy id is already mapped to a different new id."""

    def __init__(self, legacy_id: str, existing_id: str, new_id: str) -> None:
        self.legacy_id = legacy_id
        self.existing_id = existing_id
        self.new_id = new_id
        super().__init__(
            f"Legacy id {legacy_id} is already mapped to {existing_id}, refusing to remap to {new_id}"
        )


class BatchWriteError(MigrationError):
    """
    Raised when a chunk insert fails; the whole batch counts as failed.

    Chunks written before the failure are not rolled back. Re-running skips
    them through the natural-key check.

    Attributes:
        chunk_index: Index of the chunk that failed.
        chunks_written: Number of chunks committed before the failure.
        records_written: Number of rows committed before the failure.
        dependents_written: Dependent rows written for the committed chunks, per table.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="BATCH_WRITE_ERROR",
        suggested_action="Inspect errorCount after the run and remediate the failed rows",
    )

    def __init__(
        self,
        error: str,
        *,
        family: str | None = None,
        chunk_index: int = 0,
        chunks_written: int = 0,
        records_written: int = 0,
        dependents_written: dict[str, int] | None = None,
    ) -> None:
        self.original_error = error
        self.dependents_written = dict(dependents_written or {})
        self.chunk_index = chunk_index
        self.chunks_written = chunks_written
        self.records_written = records_written
        super().__init__(f"Chunk {chunk_index} insert failed: {error}", family=family)


class DocumentParseError(MigrationError):
    """Raised by a document parser when a legacy payload fails structural validation."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.WARNING,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="DOCUMENT_PARSE_ERROR",
        suggested_action="The row was migrated with the default document",
    )


__all__ = [
    "ErrorSeverity",
    "ErrorRecoverability",
    "ErrorClassification",
    "MigrationError",
    "ConfigurationError",
    "SourceReadError",
    "CursorOrderError",
    "TargetReadError",
    "CheckpointCorruptError",
    "IdentityConflictError",
    "BatchWriteError",
    "DocumentParseError",
]
