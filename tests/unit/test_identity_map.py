"""
Unit tests for identity maps and their stores.
"""

import json
from pathlib import Path

import pytest

from legacymigrate.exceptions import CheckpointCorruptError, IdentityConflictError
from legacymigrate.repositories.identity_map import (
    FileIdentityMapStore,
    IdentityMap,
    IdentityMapStore,
    InMemoryIdentityMapStore,
)


class TestIdentityMap:
    """Tests for IdentityMap."""

    def test_record_and_get(self):
        """Test recording a mapping."""
        ids = IdentityMap()
        ids.record("u1", "new-1")

        assert "u1" in ids
        assert ids.get("u1") == "new-1"
        assert ids.get("u2") is None
        assert len(ids) == 1

    def test_rerecording_same_pair_is_noop(self):
        """Test that the same mapping can be recorded twice."""
        ids = IdentityMap({"u1": "new-1"})
        ids.record("u1", "new-1")
        assert ids.snapshot() == {"u1": "new-1"}
        assert not ids.dirty

    def test_conflicting_mapping_raises(self):
        """Test that a legacy id is never remapped."""
        ids = IdentityMap({"u1": "new-1"})
        with pytest.raises(IdentityConflictError):
            ids.record("u1", "new-2")
        assert ids.get("u1") == "new-1"

    def test_dirty_tracking(self):
        """Test that additions mark the map dirty until mark_clean."""
        ids = IdentityMap()
        assert not ids.dirty
        ids.record("u1", "new-1")
        assert ids.dirty
        ids.mark_clean()
        assert not ids.dirty

    def test_preserves_insertion_order(self):
        """Test that iteration follows the order mappings were recorded."""
        ids = IdentityMap()
        for legacy_id in ("c", "a", "b"):
            ids.record(legacy_id, f"new-{legacy_id}")
        assert list(ids) == ["c", "a", "b"]
        assert list(ids.snapshot()) == ["c", "a", "b"]


class TestFileIdentityMapStore:
    """Tests for FileIdentityMapStore."""

    @pytest.fixture
    def path(self, tmp_path: Path) -> Path:
        return tmp_path / "user-id-map.json"

    @pytest.fixture
    def store(self, path: Path) -> FileIdentityMapStore:
        return FileIdentityMapStore(path, family="users", enable_tracing=False)

    def test_implements_protocol(self, store: FileIdentityMapStore):
        """Test that the file store satisfies IdentityMapStore."""
        assert isinstance(store, IdentityMapStore)

    @pytest.mark.asyncio
    async def test_missing_file_loads_empty(self, store: FileIdentityMapStore):
        """Test that an absent map loads as empty."""
        ids = await store.load()
        assert len(ids) == 0

    @pytest.mark.asyncio
    async def test_save_writes_flat_object(self, store: FileIdentityMapStore, path: Path):
        """Test the on-disk format is a single object of string pairs."""
        ids = IdentityMap()
        ids.record("u1", "new-1")
        ids.record("u2", "new-2")

        await store.save(ids)

        assert json.loads(path.read_text()) == {"u1": "new-1", "u2": "new-2"}
        assert not ids.dirty

    @pytest.mark.asyncio
    async def test_round_trip(self, store: FileIdentityMapStore):
        """Test that a saved map loads back equal."""
        await store.save(IdentityMap({"u1": "new-1"}))
        loaded = await store.load()
        assert loaded.snapshot() == {"u1": "new-1"}

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self, store: FileIdentityMapStore, path: Path):
        """Test that unparsable content is corrupt."""
        path.write_text("{")
        with pytest.raises(CheckpointCorruptError):
            await store.load()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", ['["u1"]', '{"u1": 5}'])
    async def test_wrong_shape_raises(self, store: FileIdentityMapStore, path: Path, content: str):
        """Test that JSON of the wrong shape is corrupt."""
        path.write_text(content)
        with pytest.raises(CheckpointCorruptError):
            await store.load()


class TestInMemoryIdentityMapStore:
    """Tests for InMemoryIdentityMapStore."""

    @pytest.mark.asyncio
    async def test_save_counts_and_snapshots(self):
        """Test that saves replace the stored entries."""
        store = InMemoryIdentityMapStore({"u1": "new-1"})
        ids = await store.load()
        ids.record("u2", "new-2")

        await store.save(ids)

        assert store.entries == {"u1": "new-1", "u2": "new-2"}
        assert store.save_count == 1

    @pytest.mark.asyncio
    async def test_load_returns_independent_copy(self):
        """Test that changes to a loaded map do not leak into the store."""
        store = InMemoryIdentityMapStore()
        ids = await store.load()
        ids.record("u1", "new-1")
        assert store.entries == {}
