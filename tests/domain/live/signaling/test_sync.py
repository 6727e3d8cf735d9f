"""Tests for LivenessSync status writes."""

import pytest

from app.domain.live.signaling.sync import LivenessSync
from app.utils.app_errors import AppError, AppErrorCode
from tests.fixtures.store_fixtures import InMemoryStore


@pytest.fixture
def sync(memory_store: InMemoryStore) -> LivenessSync:
    memory_store.seed(
        "livestreams",
        {"id": "ls_1", "vendor_id": "vendor_1", "title": "Launch", "stream_key": "k1", "status": "scheduled"},
    )
    return LivenessSync(memory_store, "livestreams")  # type: ignore[arg-type]


class TestMarkLiveAndEnded:
    async def test_mark_live_sets_status_and_timestamps(self, sync: LivenessSync, memory_store: InMemoryStore):
        rows = await sync.mark_live("k1")

        assert len(rows) == 1
        row = memory_store.rows("livestreams")[0]
        assert row["status"] == "live"
        assert row["started_at"] is not None
        assert row["updated_at"] == row["started_at"]

    async def test_mark_ended_sets_status_and_timestamps(self, sync: LivenessSync, memory_store: InMemoryStore):
        await sync.mark_live("k1")
        rows = await sync.mark_ended("k1")

        assert rows[0]["status"] == "ended"
        row = memory_store.rows("livestreams")[0]
        assert row["ended_at"] is not None
        assert row["started_at"] is not None

    async def test_mark_live_propagates_store_errors(self, sync: LivenessSync, memory_store: InMemoryStore):
        memory_store.fail("update")

        with pytest.raises(AppError) as exc_info:
            await sync.mark_live("k1")

        assert exc_info.value.errcode == AppErrorCode.E_PERSISTENCE_ERROR.value


class TestHooks:
    async def test_on_start_returns_true(self, sync: LivenessSync, memory_store: InMemoryStore):
        assert await sync.on_start("k1") is True
        assert memory_store.rows("livestreams")[0]["status"] == "live"

    async def test_on_end_unknown_key_is_not_a_failure(self, sync: LivenessSync, memory_store: InMemoryStore):
        assert await sync.on_end("unknown") is True
        assert memory_store.rows("livestreams")[0]["status"] == "scheduled"

    async def test_on_start_swallows_store_errors(self, sync: LivenessSync, memory_store: InMemoryStore):
        memory_store.fail("update")

        assert await sync.on_start("k1") is False
        assert memory_store.rows("livestreams")[0]["status"] == "scheduled"

    async def test_on_end_swallows_unexpected_errors(self, memory_store: InMemoryStore):
        class BrokenStore:
            async def update(self, *args, **kwargs):
                raise RuntimeError("connection reset")

        sync = LivenessSync(BrokenStore(), "livestreams")  # type: ignore[arg-type]

        assert await sync.on_end("k1") is False
