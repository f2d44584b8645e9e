"""Unit tests for the in-memory uniqueifier and engine selection."""

import pytest

from uniqueifier.engine.db_engine import DbUniqueifier
from uniqueifier.engine.factory import (
    UniqueifierType,
    create_uniqueifier,
    resolve_uniqueifier_type,
)
from uniqueifier.engine.memory_engine import MemoryUniqueifier

from conftest import BUCKET


class TestMemoryUniqueifier:
    """Memory-specific behavior."""

    @pytest.mark.asyncio
    async def test_close_clears_history(self, memory_engine):
        """Closing drops every assignment."""
        await memory_engine.uniquify(BUCKET, "P1")
        await memory_engine.close()

        assert memory_engine.size() == 0
        assert memory_engine.snapshot() == []

    @pytest.mark.asyncio
    async def test_snapshot_in_creation_order(self, memory_engine):
        """Snapshots list the oldest assignment first."""
        await memory_engine.uniquify(BUCKET, "P2")
        await memory_engine.uniquify(BUCKET, "P1")

        assert [a.key for a in memory_engine.snapshot()] == [
            (f"{BUCKET}:00", "P2"),
            (f"{BUCKET}:00", "P1"),
        ]

    @pytest.mark.asyncio
    async def test_stats_not_persistent(self, memory_engine):
        """Memory stats say nothing is kept on disk."""
        stats = memory_engine.get_stats()

        assert stats["backend"] == "memory"
        assert stats["persistent"] is False
        assert stats["size"] == 0

    @pytest.mark.asyncio
    async def test_repeated_sweeps_form_sawtooth(self):
        """History climbs to 110% and drops back to capacity each time."""
        engine = MemoryUniqueifier(history_length=20)
        sizes = []
        for i in range(70):
            await engine.uniquify(BUCKET, f"S{i}")
            sizes.append(engine.size())

        # First sweep on the 23rd insert, then every third insert
        assert max(sizes) == 22
        assert sizes[22] == 20
        assert min(sizes[22:]) == 20
        assert engine.get_stats()["sweeps"] == 16
        assert engine.get_stats()["evictions"] == 48


class TestResolveUniqueifierType:
    """Engine names are matched case-insensitively."""

    @pytest.mark.parametrize("name", ["db", "DB", "Db", "database", "durable", " db "])
    def test_db_names(self, name):
        assert resolve_uniqueifier_type(name) == UniqueifierType.DB

    @pytest.mark.parametrize("name", ["memory", "Memory", "MEMORY", "in-memory"])
    def test_memory_names(self, name):
        assert resolve_uniqueifier_type(name) == UniqueifierType.MEMORY

    @pytest.mark.parametrize("name", [None, "", "   ", "redis", "mem"])
    def test_unknown_falls_back_to_db(self, name):
        assert resolve_uniqueifier_type(name) == UniqueifierType.DB


class TestCreateUniqueifier:
    """The factory builds the selected engine."""

    @pytest.mark.asyncio
    async def test_creates_memory_engine(self):
        engine = create_uniqueifier("Memory", 50)
        try:
            assert isinstance(engine, MemoryUniqueifier)
            assert engine.history_length == 50
        finally:
            await engine.close()

    @pytest.mark.asyncio
    async def test_unknown_name_creates_db_engine(self):
        engine = create_uniqueifier("bogus", 50, "sqlite://")
        try:
            assert isinstance(engine, DbUniqueifier)
            assert engine.history_length == 50
        finally:
            await engine.close()
