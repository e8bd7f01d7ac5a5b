"""
Standard span attributes for legacymigrate.

Attribute constants shared by all pipeline components so spans from the
reader, filter, writer and runner can be correlated by family and batch.

Example:
    >>> from legacymigrate.observability.attributes import ATTR_FAMILY, ATTR_BATCH_SIZE
    >>>
    >>> with tracer.span(
    ...     "legacymigrate.reader.fetch_next_batch",
    ...     {ATTR_FAMILY: "users", ATTR_BATCH_SIZE: 5000},
    ... ):
    ...     pass
"""

# =============================================================================
# Migration Attributes
# =============================================================================

ATTR_FAMILY = "legacymigrate.family"
"""Record family being migrated (e.g., 'users', 'resumes')."""

ATTR_BATCH_NUMBER = "legacymigrate.batch.number"
"""1-based index of the batch within the current run (integer)."""

ATTR_BATCH_SIZE = "legacymigrate.batch.size"
"""Configured page size or number of rows in a batch (integer)."""

ATTR_CHUNK_SIZE = "legacymigrate.chunk.size"
"""Maximum number of rows per insert call (integer)."""

ATTR_CHUNK_COUNT = "legacymigrate.chunk.count"
"""Number of chunks a batch was split into (integer)."""

ATTR_RECORD_COUNT = "legacymigrate.record.count"
"""Number of records involved in an operation (integer)."""

ATTR_SKIPPED_COUNT = "legacymigrate.record.skipped"
"""Number of records skipped by the existence filter (integer)."""

ATTR_CURSOR_TIMESTAMP = "legacymigrate.cursor.timestamp"
"""ISO 8601 timestamp component of the cursor (string)."""

ATTR_CURSOR_ID = "legacymigrate.cursor.id"
"""Record id component of the cursor (string)."""

# =============================================================================
# Database Attributes (OpenTelemetry semantic conventions)
# =============================================================================

ATTR_DB_SYSTEM = "db.system"
"""Database system identifier (e.g., 'postgresql', 'sqlite')."""

ATTR_DB_OPERATION = "db.operation"
"""Database operation name (e.g., 'SELECT', 'INSERT')."""

ATTR_DB_TABLE = "db.sql.table"
"""Table the operation targets."""

# =============================================================================
# Error Attributes
# =============================================================================

ATTR_ERROR_TYPE = "error.type"
"""Exception class name of a recorded failure."""


__all__ = [
    "ATTR_FAMILY",
    "ATTR_BATCH_NUMBER",
    "ATTR_BATCH_SIZE",
    "ATTR_CHUNK_SIZE",
    "ATTR_CHUNK_COUNT",
    "ATTR_RECORD_COUNT",
    "ATTR_SKIPPED_COUNT",
    "ATTR_CURSOR_TIMESTAMP",
    "ATTR_CURSOR_ID",
    "ATTR_DB_SYSTEM",
    "ATTR_DB_OPERATION",
    "ATTR_DB_TABLE",
    "ATTR_ERROR_TYPE",
]
