"""
Command-line entry point.

Usage:
    legacymigrate users              Migrate users (User + Secrets)
    legacymigrate resumes            Migrate resumes (needs the user identity map)
    legacymigrate all                Users, then resumes
    legacymigrate check-connection   Run SELECT 1 against both databases

Connection strings come from PRODUCTION_DATABASE_URL (legacy source) and
DATABASE_URL (target), read from the environment or a .env file. Exit code
is 0 when every family completed or was paused by a signal, 1 otherwise.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from legacymigrate.config import MigrationSettings, get_settings
from legacymigrate.exceptions import ConfigurationError
from legacymigrate.families import default_families
from legacymigrate.models import MigrationSummary
from legacymigrate.runner import create_runners, run_families
from legacymigrate.shutdown import ShutdownCoordinator
from legacymigrate.stores.sql import SQLSourceStore, SQLTargetStore

logger = logging.getLogger(__name__)

COMMAND_FAMILIES = {
    "users": ("users",),
    "resumes": ("resumes",),
    "all": ("users", "resumes"),
}

_ASYNC_DRIVERS = {
    "postgres": "postgresql+asyncpg",
    "postgresql": "postgresql+asyncpg",
    "sqlite": "sqlite+aiosqlite",
}


def async_url(url: str) -> str:
    """
    Add the async driver to a plain connection string.

    Example:
        >>> async_url("postgresql://app@db/app")
        'postgresql+asyncpg://app@db/app'
    """
    scheme, sep, rest = url.partition("://")
    if not sep:
        return url
    return f"{_ASYNC_DRIVERS.get(scheme, scheme)}://{rest}"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="legacymigrate",
        description="Resumable migration of users and resumes from the legacy database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        metavar="N",
        help="Rows read from the source per batch (default: BATCH_SIZE or 5000)",
    )
    parser.add_argument(
        "--insert-chunk-size",
        type=int,
        default=None,
        metavar="N",
        help="Rows per insert call (default: INSERT_CHUNK_SIZE or 1000)",
    )
    parser.add_argument(
        "--write-concurrency",
        type=int,
        default=None,
        metavar="N",
        help="Chunks of one batch inserted in parallel (default: 1)",
    )
    parser.add_argument(
        "--state-dir",
        type=Path,
        default=None,
        help="Directory of progress and id-map files (default: ./scripts/migration)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "command",
        choices=[*COMMAND_FAMILIES, "check-connection"],
        help="What to run",
    )
    return parser


def _settings_from_args(args: argparse.Namespace) -> MigrationSettings:
    overrides = {
        "batch_size": args.batch_size,
        "insert_chunk_size": args.insert_chunk_size,
        "write_concurrency": args.write_concurrency,
        "state_dir": args.state_dir,
        "log_level": args.log_level,
    }
    return get_settings(**{key: value for key, value in overrides.items() if value is not None})


def _create_engines(settings: MigrationSettings) -> tuple[AsyncEngine, AsyncEngine]:
    source_url, target_url = settings.require_urls()
    return create_async_engine(async_url(source_url)), create_async_engine(async_url(target_url))


async def check_connection(settings: MigrationSettings) -> int:
    """Run SELECT 1 on both databases and report each; returns the exit code."""
    source_engine, target_engine = _create_engines(settings)
    stores = {
        "Production database": SQLSourceStore(source_engine, enable_tracing=False),
        "Target database": SQLTargetStore(target_engine, enable_tracing=False),
    }
    failed = False
    try:
        for label, store in stores.items():
            try:
                await store.ping()
            except Exception as e:
                failed = True
                print(f"FAILED  {label}: {e}")
                logger.debug("Connection check failed for %s", label, exc_info=True)
            else:
                print(f"OK      {label}")
    finally:
        await source_engine.dispose()
        await target_engine.dispose()
    return 1 if failed else 0


async def migrate(settings: MigrationSettings, family_names: Sequence[str]) -> list[MigrationSummary]:
    """
    Run the named families against the configured databases.

    Signals SIGINT and SIGTERM pause the run at the next batch boundary.
    """
    source_engine, target_engine = _create_engines(settings)
    shutdown = ShutdownCoordinator()
    try:
        runners = create_runners(
            default_families(),
            SQLSourceStore(source_engine, enable_tracing=settings.enable_tracing),
            SQLTargetStore(target_engine, enable_tracing=settings.enable_tracing),
            settings.state_dir,
            config=settings.run_config(),
            shutdown=shutdown,
            enable_tracing=settings.enable_tracing,
        )
        selected = [runner for runner in runners if runner.family.name in family_names]

        shutdown.register_signals()
        try:
            return await run_families(selected)
        finally:
            shutdown.unregister_signals()
    finally:
        await source_engine.dispose()
        await target_engine.dispose()


def main(argv: Sequence[str] | None = None) -> int:
    """Parse arguments, run the command and return the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        settings = _settings_from_args(args)
        logging.basicConfig(
            level=settings.log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
        if args.command == "check-connection":
            return asyncio.run(check_connection(settings))
        summaries = asyncio.run(migrate(settings, COMMAND_FAMILIES[args.command]))
    except ConfigurationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    for summary in summaries:
        print(summary.format())
    return max((summary.outcome.exit_code for summary in summaries), default=0)


__all__ = [
    "COMMAND_FAMILIES",
    "async_url",
    "build_parser",
    "check_connection",
    "migrate",
    "main",
]
