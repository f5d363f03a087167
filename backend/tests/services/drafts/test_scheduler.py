"""Tests for threshold-triggered, debounced auto-save."""

import asyncio

import pytest

from entrysync.models.attendance import AttendanceStatus
from entrysync.schemas.records import UpsertResult
from entrysync.services.remote.base import RemoteStoreError
from entrysync.services.drafts import AutoSaveScheduler, SyncError, attendance_scope

DEBOUNCE = 0.05
SETTLE = 0.2


@pytest.fixture
def scope():
    return attendance_scope("c1", "2024-02-01")


@pytest.fixture
def store(registry, scope):
    return registry.store_for(scope)


@pytest.fixture
async def scheduler(mock_engine, store):
    scheduler = AutoSaveScheduler(mock_engine, store, batch_threshold=5, debounce_seconds=DEBOUNCE)
    yield scheduler
    await scheduler.close()


def dirty(store, *student_ids):
    for student_id in student_ids:
        store.mutate(student_id, status=AttendanceStatus.ABSENT, is_dirty=True)


class TestArming:

    async def test_below_threshold_does_not_save(self, scheduler, store, mock_remote_store):
        dirty(store, "s1", "s2", "s3", "s4")

        assert not scheduler.armed
        await asyncio.sleep(SETTLE)

        mock_remote_store.batch_upsert.assert_not_called()
        assert store.dirty_count() == 4

    async def test_threshold_arms_and_fires_once(self, scheduler, store, mock_remote_store):
        dirty(store, "s1", "s2", "s3", "s4", "s5")
        assert scheduler.armed

        await asyncio.sleep(SETTLE)
        await scheduler.wait_idle()

        mock_remote_store.batch_upsert.assert_awaited_once()
        assert store.dirty_count() == 0
        assert scheduler.last_result.saved == 5
        assert not scheduler.armed

    async def test_edits_inside_window_coalesce_into_one_flush(self, scheduler, store, mock_remote_store):
        dirty(store, "s1", "s2", "s3", "s4", "s5")
        await asyncio.sleep(DEBOUNCE / 2)
        dirty(store, "s6")
        await asyncio.sleep(DEBOUNCE / 2)
        dirty(store, "s7")

        await asyncio.sleep(SETTLE)
        await scheduler.wait_idle()

        mock_remote_store.batch_upsert.assert_awaited_once()
        _, items, _ = mock_remote_store.batch_upsert.call_args.args
        assert len(items) == 7

    async def test_higher_multiples_arm(self, mock_engine, store, mock_remote_store):
        scheduler = AutoSaveScheduler(mock_engine, store, batch_threshold=5, debounce_seconds=DEBOUNCE, enabled=False)
        dirty(store, *[f"s{i}" for i in range(1, 10)])

        scheduler.auto_save_enabled = True
        assert not scheduler.armed  # 9 is not a multiple of 5

        dirty(store, "s10")
        assert scheduler.armed
        await scheduler.close()

    async def test_back_to_zero_cancels_timer(self, scheduler, store):
        dirty(store, "s1", "s2", "s3", "s4", "s5")
        assert scheduler.armed

        store.clear()

        assert not scheduler.armed

    async def test_disabled_never_arms(self, mock_engine, store, mock_remote_store):
        scheduler = AutoSaveScheduler(mock_engine, store, batch_threshold=5, debounce_seconds=DEBOUNCE, enabled=False)
        dirty(store, "s1", "s2", "s3", "s4", "s5")

        assert not scheduler.armed
        await asyncio.sleep(SETTLE)
        mock_remote_store.batch_upsert.assert_not_called()
        await scheduler.close()

    async def test_disabling_cancels_armed_timer(self, scheduler, store, mock_remote_store):
        dirty(store, "s1", "s2", "s3", "s4", "s5")
        scheduler.auto_save_enabled = False

        await asyncio.sleep(SETTLE)

        assert not scheduler.armed
        mock_remote_store.batch_upsert.assert_not_called()

    async def test_nothing_arms_while_flush_pending(self, scheduler, store, mock_engine, mock_remote_store, scope):
        release = asyncio.Event()

        async def blocked_upsert(collection, items, conflict_fields):
            await release.wait()
            return UpsertResult(saved=len(items), ids=list(range(len(items))))

        mock_remote_store.batch_upsert.side_effect = blocked_upsert
        dirty(store, "s1")
        flush = asyncio.ensure_future(mock_engine.flush(scope))
        await asyncio.sleep(0)
        assert scheduler.saving

        dirty(store, "s2", "s3", "s4", "s5")
        assert not scheduler.armed

        release.set()
        await flush
        assert not scheduler.saving

    def test_threshold_must_be_positive(self, mock_engine, store):
        with pytest.raises(ValueError):
            AutoSaveScheduler(mock_engine, store, batch_threshold=0)


class TestExplicitSave:

    async def test_save_now_ignores_threshold(self, scheduler, store, mock_remote_store):
        dirty(store, "s1", "s2")

        result = await scheduler.save_now()

        assert result.saved == 2
        assert store.dirty_count() == 0
        assert scheduler.last_result is result

    async def test_save_now_cancels_pending_timer(self, scheduler, store, mock_remote_store):
        dirty(store, "s1", "s2", "s3", "s4", "s5")
        assert scheduler.armed

        await scheduler.save_now()
        await asyncio.sleep(SETTLE)

        assert not scheduler.armed
        mock_remote_store.batch_upsert.assert_awaited_once()

    async def test_save_now_reraises_failures(self, scheduler, store, mock_remote_store):
        dirty(store, "s1")
        mock_remote_store.batch_upsert.side_effect = RemoteStoreError("offline")

        with pytest.raises(SyncError):
            await scheduler.save_now()

        assert scheduler.last_error is not None
        assert store.dirty_count() == 1


class TestFailedAutoSave:

    async def test_failure_is_recorded_and_drafts_stay_dirty(self, scheduler, store, mock_remote_store, caplog):
        mock_remote_store.batch_upsert.side_effect = RemoteStoreError("offline")
        dirty(store, "s1", "s2", "s3", "s4", "s5")

        await asyncio.sleep(SETTLE)
        await scheduler.wait_idle()

        assert isinstance(scheduler.last_error, SyncError)
        assert store.dirty_count() == 5
        assert "Auto-save for attendance-c1-2024-02-01 failed" in caplog.text
        # no retry loop
        assert not scheduler.armed
        mock_remote_store.batch_upsert.assert_awaited_once()

    async def test_detach_stops_scheduling(self, scheduler, store, mock_remote_store):
        scheduler.detach()
        dirty(store, "s1", "s2", "s3", "s4", "s5")

        await asyncio.sleep(SETTLE)

        assert not scheduler.armed
        mock_remote_store.batch_upsert.assert_not_called()

    async def test_detach_during_auto_save_does_not_rearm(self, scheduler, store, mock_remote_store):
        started = asyncio.Event()
        release = asyncio.Event()

        async def blocked_upsert(collection, items, conflict_fields):
            started.set()
            await release.wait()
            return UpsertResult(saved=len(items), ids=list(range(len(items))))

        mock_remote_store.batch_upsert.side_effect = blocked_upsert
        dirty(store, "s1", "s2", "s3", "s4", "s5")
        await asyncio.wait_for(started.wait(), SETTLE)

        scheduler.detach()
        # edited while in flight, so all five are still dirty afterwards
        for student_id in ("s1", "s2", "s3", "s4", "s5"):
            store.mutate(student_id, status=AttendanceStatus.LATE, is_dirty=True)
        release.set()
        await scheduler.wait_idle()

        assert store.dirty_count() == 5
        assert not scheduler.armed
        await asyncio.sleep(SETTLE)
        mock_remote_store.batch_upsert.assert_awaited_once()
