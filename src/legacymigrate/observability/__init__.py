"""
Observability utilities for legacymigrate.

Provides the composition-based tracer used by every pipeline component and
the standard span attribute names.

Example:
    >>> from legacymigrate.observability import create_tracer, ATTR_FAMILY
    >>>
    >>> tracer = create_tracer(__name__, enable_tracing=False)
    >>> with tracer.span("legacymigrate.runner.batch", {ATTR_FAMILY: "users"}):
    ...     pass
"""

from legacymigrate.observability.attributes import (
    ATTR_BATCH_NUMBER,
    ATTR_BATCH_SIZE,
    ATTR_CHUNK_COUNT,
    ATTR_CHUNK_SIZE,
    ATTR_CURSOR_ID,
    ATTR_CURSOR_TIMESTAMP,
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_DB_TABLE,
    ATTR_ERROR_TYPE,
    ATTR_FAMILY,
    ATTR_RECORD_COUNT,
    ATTR_SKIPPED_COUNT,
)
from legacymigrate.observability.tracer import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)

__all__ = [
    # Tracer
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
    # Attributes
    "ATTR_BATCH_NUMBER",
    "ATTR_BATCH_SIZE",
    "ATTR_CHUNK_COUNT",
    "ATTR_CHUNK_SIZE",
    "ATTR_CURSOR_ID",
    "ATTR_CURSOR_TIMESTAMP",
    "ATTR_DB_OPERATION",
    "ATTR_DB_SYSTEM",
    "ATTR_DB_TABLE",
    "ATTR_ERROR_TYPE",
    "ATTR_FAMILY",
    "ATTR_RECORD_COUNT",
    "ATTR_SKIPPED_COUNT",
]
