"""
Unit tests for ChunkedWriter.

Tests chunk boundaries, identity recording, best-effort dependents, partial
failure reporting, and concurrent chunk writes.
"""

import asyncio
from typing import Any

import pytest

from legacymigrate.exceptions import BatchWriteError
from legacymigrate.models import TargetRecord
from legacymigrate.observability import MockTracer
from legacymigrate.repositories.identity_map import IdentityMap
from legacymigrate.stores.in_memory import InMemoryTargetStore, UniqueViolationError
from legacymigrate.writer import ChunkedWriter, chunked


def make_records(n: int, *, accounts: bool = True) -> list[TargetRecord]:
    records = []
    for i in range(n):
        dependents: dict[str, list[dict[str, Any]]] = {}
        if accounts:
            dependents["account"] = [{"id": f"acc-{i}", "user_id": f"new-{i}"}]
        records.append(
            TargetRecord(
                legacy_id=f"u{i}",
                new_id=f"new-{i}",
                values={
                    "id": f"new-{i}",
                    "email": f"{i}@x.io",
                    "username": f"u{i}",
                    "display_username": f"U{i}",
                },
                dependents=dependents,
            )
        )
    return records


class TestChunked:
    """Tests for the chunked helper."""

    def test_splits_with_remainder(self):
        """Test that the last chunk holds the remainder."""
        assert list(chunked([1, 2, 3, 4, 5], 2)) == [[1, 2], [3, 4], [5]]

    def test_empty(self):
        """Test that nothing yields no chunks."""
        assert list(chunked([], 3)) == []

    def test_rejects_non_positive_size(self):
        """Test that the size must be positive."""
        with pytest.raises(ValueError):
            list(chunked([1], 0))


class TestWriteChunked:
    """Tests for ChunkedWriter.write_chunked."""

    @pytest.mark.asyncio
    async def test_writes_in_chunks(self, target: InMemoryTargetStore):
        """Test that records are inserted in chunk_size pieces."""
        identity_map = IdentityMap()
        writer = ChunkedWriter(target, identity_map, family="users", enable_tracing=False)

        result = await writer.write_chunked("user", make_records(5, accounts=False), 2)

        assert result.written == 5
        assert result.chunks == 3
        assert target.insert_calls == [("user", 2), ("user", 2), ("user", 1)]
        assert target.count("user") == 5

    @pytest.mark.asyncio
    async def test_records_identities(self, target: InMemoryTargetStore):
        """Test that every written record lands in the identity map."""
        identity_map = IdentityMap()
        writer = ChunkedWriter(target, identity_map, enable_tracing=False)

        await writer.write_chunked("user", make_records(3), 2)

        assert identity_map.snapshot() == {"u0": "new-0", "u1": "new-1", "u2": "new-2"}

    @pytest.mark.asyncio
    async def test_writes_dependents_after_primary(self, target: InMemoryTargetStore):
        """Test that dependent rows follow their chunk."""
        writer = ChunkedWriter(target, IdentityMap(), enable_tracing=False)

        result = await writer.write_chunked("user", make_records(3), 2, dependent_tables=("account",))

        assert target.insert_calls == [("user", 2), ("account", 2), ("user", 1), ("account", 1)]
        assert result.dependents == {"account": 3}

    @pytest.mark.asyncio
    async def test_empty_dependent_rows_are_not_inserted(self, target: InMemoryTargetStore):
        """Test that a dependent table with no rows issues no insert."""
        writer = ChunkedWriter(target, IdentityMap(), enable_tracing=False)

        result = await writer.write_chunked(
            "user", make_records(2, accounts=False), 10, dependent_tables=("account",)
        )

        assert target.insert_calls == [("user", 2)]
        assert result.dependents == {"account": 0}

    @pytest.mark.asyncio
    async def test_chunk_size_does_not_change_result(self):
        """Test that chunk size 1 and chunk size N write the same rows."""
        small, large = InMemoryTargetStore(), InMemoryTargetStore()

        await ChunkedWriter(small, IdentityMap(), enable_tracing=False).write_chunked(
            "user", make_records(7), 1, dependent_tables=("account",)
        )
        await ChunkedWriter(large, IdentityMap(), enable_tracing=False).write_chunked(
            "user", make_records(7), 100, dependent_tables=("account",)
        )

        assert small.rows("user") == large.rows("user")
        assert small.rows("account") == large.rows("account")

    @pytest.mark.asyncio
    async def test_empty_batch(self, target: InMemoryTargetStore):
        """Test that no records means no inserts."""
        writer = ChunkedWriter(target, IdentityMap(), enable_tracing=False)
        result = await writer.write_chunked("user", [], 10)
        assert result.written == 0
        assert target.insert_calls == []

    @pytest.mark.asyncio
    async def test_failed_chunk_raises_with_partial_counts(self, target: InMemoryTargetStore):
        """Test that chunks before the failure stay written and are reported."""
        identity_map = IdentityMap()
        target.fail_on("insert_many:user", UniqueViolationError("duplicate"), after=1)
        writer = ChunkedWriter(target, identity_map, family="users", enable_tracing=False)

        with pytest.raises(BatchWriteError) as exc_info:
            await writer.write_chunked("user", make_records(6), 2, dependent_tables=("account",))

        error = exc_info.value
        assert error.chunk_index == 1
        assert error.chunks_written == 1
        assert error.records_written == 2
        assert error.dependents_written == {"account": 2}
        assert error.family == "users"
        assert isinstance(error.__cause__, UniqueViolationError)
        assert target.count("user") == 2
        assert set(identity_map) == {"u0", "u1"}

    @pytest.mark.asyncio
    async def test_chunks_after_failure_are_not_written(self, target: InMemoryTargetStore):
        """Test that the writer stops at the first failed chunk."""
        target.fail_on("insert_many:user", UniqueViolationError("duplicate"))
        writer = ChunkedWriter(target, IdentityMap(), enable_tracing=False)

        with pytest.raises(BatchWriteError):
            await writer.write_chunked("user", make_records(4), 2)

        assert target.count("user") == 0
        assert target.calls["insert_many:user"] == 1

    @pytest.mark.asyncio
    async def test_dependent_failure_keeps_primary_rows(self, target: InMemoryTargetStore):
        """Test that a failed dependent insert is logged, not raised."""
        target.fail_on("insert_many:account", ConnectionError("reset"))
        identity_map = IdentityMap()
        writer = ChunkedWriter(target, identity_map, enable_tracing=False)

        result = await writer.write_chunked("user", make_records(4), 2, dependent_tables=("account",))

        assert result.written == 4
        assert result.dependents == {"account": 2}
        assert target.count("user") == 4
        assert len(identity_map) == 4

    @pytest.mark.asyncio
    async def test_span(self, target: InMemoryTargetStore, mock_tracer: MockTracer):
        """Test that one span covers the batch."""
        writer = ChunkedWriter(target, IdentityMap(), family="users", tracer=mock_tracer)
        await writer.write_chunked("user", make_records(3), 2)
        assert mock_tracer.span_names == ["legacymigrate.writer.write_chunked"]


class SlowTargetStore(InMemoryTargetStore):
    """Tracks how many inserts run at the same time."""

    def __init__(self) -> None:
        super().__init__()
        self.active = 0
        self.peak = 0

    async def insert_many(self, table, rows):
        self.active += 1
        self.peak = max(self.peak, self.active)
        await asyncio.sleep(0.01)
        try:
            await super().insert_many(table, rows)
        finally:
            self.active -= 1


class TestConcurrentWrites:
    """Tests for write_concurrency above one."""

    def test_rejects_non_positive_concurrency(self, target: InMemoryTargetStore):
        """Test that concurrency must be positive."""
        with pytest.raises(ValueError):
            ChunkedWriter(target, IdentityMap(), concurrency=0)

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        """Test that no more than `concurrency` chunks are in flight."""
        target = SlowTargetStore()
        writer = ChunkedWriter(target, IdentityMap(), concurrency=2, enable_tracing=False)

        result = await writer.write_chunked("user", make_records(8, accounts=False), 1)

        assert result.written == 8
        assert target.count("user") == 8
        assert 1 < target.peak <= 2

    @pytest.mark.asyncio
    async def test_concurrent_result_matches_sequential(self):
        """Test that concurrency does not change what is written."""
        sequential, concurrent = InMemoryTargetStore(), InMemoryTargetStore()
        seq_ids, con_ids = IdentityMap(), IdentityMap()

        await ChunkedWriter(sequential, seq_ids, enable_tracing=False).write_chunked(
            "user", make_records(9), 2, dependent_tables=("account",)
        )
        await ChunkedWriter(concurrent, con_ids, concurrency=3, enable_tracing=False).write_chunked(
            "user", make_records(9), 2, dependent_tables=("account",)
        )

        assert sorted(r["id"] for r in sequential.rows("user")) == sorted(r["id"] for r in concurrent.rows("user"))
        assert seq_ids.snapshot() == con_ids.snapshot()
        assert concurrent.count("account") == 9

    @pytest.mark.asyncio
    async def test_concurrent_failure_reports_lowest_chunk(self):
        """Test that the error names the first failed chunk."""
        target = InMemoryTargetStore()
        target.fail_on("insert_many:user", UniqueViolationError("duplicate"), after=2)
        writer = ChunkedWriter(target, IdentityMap(), concurrency=4, enable_tracing=False)

        with pytest.raises(BatchWriteError) as exc_info:
            await writer.write_chunked("user", make_records(4, accounts=False), 1)

        assert exc_info.value.records_written == target.count("user")
