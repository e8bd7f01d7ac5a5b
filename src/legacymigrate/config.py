"""
Configuration for migration runs.

This module provides:
- RunConfig: Tunables the engine consumes (page size, chunk size, write concurrency)
- MigrationSettings: Environment-backed settings for the command-line entry point
- get_settings: Load and validate settings, raising ConfigurationError at startup
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from legacymigrate.exceptions import ConfigurationError

DEFAULT_BATCH_SIZE = 5000
"""Rows fetched from the source per page."""

DEFAULT_INSERT_CHUNK_SIZE = 1000
"""Rows per insert call; keeps large JSON payloads under the target's message size limit."""


@dataclass(frozen=True)
class RunConfig:
    """
    Tunables for one migration run.

    Attributes:
        batch_size: Number of source rows read per page (BATCH_SIZE).
        insert_chunk_size: Maximum rows per target insert call (INSERT_CHUNK_SIZE).
            Purely a wire-size limit; it has no effect on the migrated data.
        write_concurrency: Maximum chunks of one batch inserted in parallel.
            The checkpoint only advances after every chunk of the batch finished.

    Example:
        >>> config = RunConfig(batch_size=2, insert_chunk_size=1)
    """

    batch_size: int = DEFAULT_BATCH_SIZE
    insert_chunk_size: int = DEFAULT_INSERT_CHUNK_SIZE
    write_concurrency: int = 1

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.batch_size < 1:
            raise ValueError(
                f"batch_size must be positive, got {self.batch_size}. "
                f"Use a value like {DEFAULT_BATCH_SIZE} (default)."
            )
        if self.insert_chunk_size < 1:
            raise ValueError(
                f"insert_chunk_size must be positive, got {self.insert_chunk_size}. "
                f"Use a value like {DEFAULT_INSERT_CHUNK_SIZE} (default)."
            )
        if self.write_concurrency < 1:
            raise ValueError(f"write_concurrency must be positive, got {self.write_concurrency}")


class MigrationSettings(BaseSettings):
    """
    Settings read from the environment (and an optional .env file).

    PRODUCTION_DATABASE_URL is the legacy source, DATABASE_URL the new target.
    Both are required; the remaining values have conservative defaults.
    """

    source_database_url: str | None = Field(default=None, alias="PRODUCTION_DATABASE_URL")
    target_database_url: str | None = Field(default=None, alias="DATABASE_URL")
    batch_size: int = Field(default=DEFAULT_BATCH_SIZE, alias="BATCH_SIZE", ge=1)
    insert_chunk_size: int = Field(default=DEFAULT_INSERT_CHUNK_SIZE, alias="INSERT_CHUNK_SIZE", ge=1)
    write_concurrency: int = Field(default=1, alias="WRITE_CONCURRENCY", ge=1)
    state_dir: Path = Field(default=Path("./scripts/migration"), alias="MIGRATION_STATE_DIR")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    enable_tracing: bool = Field(default=False, alias="ENABLE_TRACING")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level {v!r}; use DEBUG, INFO, WARNING, ERROR or CRITICAL")
        return level

    def run_config(self) -> RunConfig:
        return RunConfig(
            batch_size=self.batch_size,
            insert_chunk_size=self.insert_chunk_size,
            write_concurrency=self.write_concurrency,
        )

    def require_urls(self) -> tuple[str, str]:
        """
        Return (source_url, target_url).

        Raises:
            ConfigurationError: If either connection string is missing.
        """
        missing = [
            name
            for name, value in (
                ("PRODUCTION_DATABASE_URL", self.source_database_url),
                ("DATABASE_URL", self.target_database_url),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(f"{' and '.join(missing)} is not set")
        return self.source_database_url, self.target_database_url  # type: ignore[return-value]


def get_settings(**overrides: object) -> MigrationSettings:
    """
    Load settings from the environment.

    Raises:
        ConfigurationError: If a value fails validation.
    """
    try:
        return MigrationSettings(**overrides)  # type: ignore[arg-type]
    except ValidationError as e:
        raise ConfigurationError(f"Invalid migration settings: {e}") from e


__all__ = [
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_INSERT_CHUNK_SIZE",
    "RunConfig",
    "MigrationSettings",
    "get_settings",
]
