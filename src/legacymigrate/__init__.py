"""
legacymigrate - Resumable bulk migration of users and resumes to the new schema.

This library provides:
- Keyset-paginated reading of the legacy database (CursorReader)
- Checkpoints and identity maps persisted as JSON files
- Existence filtering by dependency, natural key and identity map
- Chunked bulk writes with best-effort dependent rows
- A cooperative shutdown coordinator and the run orchestrator
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("legacymigrate")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

from legacymigrate.config import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_INSERT_CHUNK_SIZE,
    MigrationSettings,
    RunConfig,
    get_settings,
)
from legacymigrate.documents import ResumeData, default_resume_data, parse_legacy_resume
from legacymigrate.exceptions import (
    BatchWriteError,
    CheckpointCorruptError,
    ConfigurationError,
    CursorOrderError,
    DocumentParseError,
    IdentityConflictError,
    MigrationError,
    SourceReadError,
    TargetReadError,
)
from legacymigrate.families import RecordFamily, ResumeFamily, UserFamily, default_families
from legacymigrate.filtering import ExistenceFilter, FilterResult
from legacymigrate.models import (
    Cursor,
    MigrationProgress,
    MigrationSummary,
    RunOutcome,
    SkipReason,
    SourceRecord,
    TargetRecord,
)
from legacymigrate.reader import CursorReader
from legacymigrate.repositories import (
    CheckpointStore,
    FileCheckpointStore,
    FileIdentityMapStore,
    IdentityMap,
    IdentityMapStore,
    InMemoryCheckpointStore,
    InMemoryIdentityMapStore,
)
from legacymigrate.runner import MigrationRunner, create_runners, run_families
from legacymigrate.shutdown import ShutdownCoordinator, ShutdownPhase, ShutdownReason
from legacymigrate.transform import Degraded, Ok, TransformResult
from legacymigrate.writer import ChunkedWriter, WriteResult, chunked

__all__ = [
    "__version__",
    # Config
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_INSERT_CHUNK_SIZE",
    "RunConfig",
    "MigrationSettings",
    "get_settings",
    # Models
    "Cursor",
    "SourceRecord",
    "TargetRecord",
    "MigrationProgress",
    "MigrationSummary",
    "RunOutcome",
    "SkipReason",
    # Exceptions
    "MigrationError",
    "ConfigurationError",
    "SourceReadError",
    "CursorOrderError",
    "TargetReadError",
    "CheckpointCorruptError",
    "IdentityConflictError",
    "BatchWriteError",
    "DocumentParseError",
    # State
    "CheckpointStore",
    "FileCheckpointStore",
    "InMemoryCheckpointStore",
    "IdentityMap",
    "IdentityMapStore",
    "FileIdentityMapStore",
    "InMemoryIdentityMapStore",
    # Pipeline
    "CursorReader",
    "ExistenceFilter",
    "FilterResult",
    "Ok",
    "Degraded",
    "TransformResult",
    "ChunkedWriter",
    "WriteResult",
    "chunked",
    "ShutdownCoordinator",
    "ShutdownPhase",
    "ShutdownReason",
    "MigrationRunner",
    "create_runners",
    "run_families",
    # Families and documents
    "RecordFamily",
    "UserFamily",
    "ResumeFamily",
    "default_families",
    "ResumeData",
    "default_resume_data",
    "parse_legacy_resume",
]
