"""
End-to-end migration from a legacy SQLite database to a target SQLite database.

Runs the default families through the file-backed runners, then runs them
again to check that a second pass writes nothing.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy import Table, select
from sqlalchemy.ext.asyncio import AsyncEngine

from legacymigrate.config import RunConfig
from legacymigrate.families import default_families
from legacymigrate.models import RunOutcome
from legacymigrate.runner import create_runners, run_families
from legacymigrate.stores.schema import (
    legacy_resume,
    legacy_secrets,
    legacy_statistics,
    legacy_user,
    target_account,
    target_resume,
    target_resume_statistics,
    target_two_factor,
    target_user,
)
from legacymigrate.stores.sql import SQLSourceStore, SQLTargetStore
from tests.fixtures import LegacyRows

pytestmark = pytest.mark.integration


async def insert(engine: AsyncEngine, table: Table, rows: list[dict[str, Any]]) -> None:
    async with engine.begin() as conn:
        await conn.execute(table.insert(), rows)


async def fetch(engine: AsyncEngine, table: Table) -> list[dict[str, Any]]:
    async with engine.connect() as conn:
        return [dict(row) for row in (await conn.execute(select(table))).mappings().all()]


@pytest_asyncio.fixture
async def legacy_data(source_engine: AsyncEngine) -> dict[str, list[dict[str, Any]]]:
    """
    Three users (one with two-factor), three owned resumes, one orphan resume.
    """
    rows = LegacyRows(aware=False)
    users = [
        rows.user(username="Jane.Doe"),
        rows.user(twoFactorEnabled=True),
        rows.user(provider="github"),
    ]
    secrets = [
        rows.secrets(users[0]["id"]),
        rows.secrets(users[1]["id"], twoFactorSecret="JBSWY3DP", twoFactorBackupCodes=["a1", "b2"]),
        rows.secrets(users[2]["id"], password=None),
    ]
    resumes = [
        rows.resume(users[0]["id"], slug="cv", visibility="public"),
        rows.resume(users[0]["id"], slug="cv-de"),
        rows.resume(users[1]["id"], slug="cv"),
        rows.resume("u-missing", slug="orphan"),
    ]
    statistics = [rows.statistics(resumes[0]["id"], views=42, downloads=7)]

    await insert(source_engine, legacy_user, users)
    await insert(source_engine, legacy_secrets, secrets)
    await insert(source_engine, legacy_resume, resumes)
    await insert(source_engine, legacy_statistics, statistics)
    return {"users": users, "resumes": resumes}


def runners(source_engine: AsyncEngine, target_engine: AsyncEngine, state_dir: Path):
    return create_runners(
        default_families(),
        SQLSourceStore(source_engine, enable_tracing=False),
        SQLTargetStore(target_engine, enable_tracing=False),
        state_dir,
        config=RunConfig(batch_size=2, insert_chunk_size=1),
        enable_tracing=False,
    )


class TestSQLitePipeline:
    """Tests for a full users-then-resumes run on SQLite."""

    @pytest.mark.asyncio
    async def test_full_migration(
        self,
        source_engine: AsyncEngine,
        target_engine: AsyncEngine,
        legacy_data: dict[str, list[dict[str, Any]]],
        tmp_path: Path,
    ):
        """Test that users and resumes land in the target with mapped owners."""
        state_dir = tmp_path / "state"

        users_summary, resumes_summary = await run_families(runners(source_engine, target_engine, state_dir))

        assert users_summary.outcome == RunOutcome.COMPLETED
        assert users_summary.created_count == 3
        assert users_summary.dependents_created == {"account": 3, "two_factor": 1}
        assert resumes_summary.outcome == RunOutcome.COMPLETED
        assert resumes_summary.created_count == 3
        assert resumes_summary.skipped_count == 1
        assert resumes_summary.dependents_created == {"resume_statistics": 1}

        user_map = json.loads((state_dir / "user-id-map.json").read_text())
        resume_map = json.loads((state_dir / "resume-id-map.json").read_text())
        assert set(user_map) == {user["id"] for user in legacy_data["users"]}
        assert set(resume_map) == {resume["id"] for resume in legacy_data["resumes"][:3]}
        assert not (state_dir / "user-progress.json").exists()
        assert not (state_dir / "resume-progress.json").exists()

        target_users = {row["id"]: row for row in await fetch(target_engine, target_user)}
        jane = target_users[user_map[legacy_data["users"][0]["id"]]]
        assert jane["display_username"] == "Jane.Doe"
        assert jane["username"] == "jane.doe"

        target_resumes = await fetch(target_engine, target_resume)
        assert {(row["slug"], row["user_id"]) for row in target_resumes} == {
            ("cv", user_map[legacy_data["users"][0]["id"]]),
            ("cv-de", user_map[legacy_data["users"][0]["id"]]),
            ("cv", user_map[legacy_data["users"][1]["id"]]),
        }
        public = next(row for row in target_resumes if row["is_public"])
        assert public["id"] == resume_map[legacy_data["resumes"][0]["id"]]
        assert public["data"]["basics"]["name"] == "Jane Doe"

        statistics = await fetch(target_engine, target_resume_statistics)
        assert [(row["resume_id"], row["views"], row["downloads"]) for row in statistics] == [
            (public["id"], 42, 7)
        ]

        two_factor = await fetch(target_engine, target_two_factor)
        assert [row["backup_codes"] for row in two_factor] == ["a1,b2"]
        assert len(await fetch(target_engine, target_account)) == 3

    @pytest.mark.asyncio
    async def test_second_run_writes_nothing(
        self,
        source_engine: AsyncEngine,
        target_engine: AsyncEngine,
        legacy_data: dict[str, list[dict[str, Any]]],
        tmp_path: Path,
    ):
        """Test that re-running a completed migration only skips."""
        state_dir = tmp_path / "state"
        await run_families(runners(source_engine, target_engine, state_dir))
        user_map = (state_dir / "user-id-map.json").read_text()

        users_summary, resumes_summary = await run_families(runners(source_engine, target_engine, state_dir))

        assert users_summary.outcome == RunOutcome.COMPLETED
        assert users_summary.created_count == 0
        assert users_summary.skipped_count == 3
        assert resumes_summary.created_count == 0
        assert resumes_summary.skipped_count == 4
        assert (state_dir / "user-id-map.json").read_text() == user_map
        assert len(await fetch(target_engine, target_user)) == 3
        assert len(await fetch(target_engine, target_resume)) == 3
        assert len(await fetch(target_engine, target_account)) == 3
