"""Tests for SessionSyncEngine sync commands."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from rowsync.device.errors import NetworkError, ProtocolError
from rowsync.healthstore.base import RecordKind, StoreAvailability, TimeWindow
from rowsync.models.device import Ack
from rowsync.sync.outcome import ErrorKind, OutcomeStatus
from rowsync.sync.state import SyncState
from rowsync.tests.conftest import make_detail, make_summary


async def _stored_workouts(store):
    return await store.list_exercise_sessions(TimeWindow.lookback(365))


async def _settle() -> None:
    for _ in range(10):
        await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# sync_one
# ---------------------------------------------------------------------------


class TestSyncOne:
    @pytest.mark.asyncio
    async def test_success_stores_and_marks_synced(self, engine, device, store) -> None:
        await engine.refresh_sessions()

        outcome = await engine.sync_one(1)

        assert outcome.status is OutcomeStatus.SUCCESS
        assert outcome.target == 1
        assert device.sessions[1].synced is True
        assert len(await _stored_workouts(store)) == 1
        state = engine.state
        assert state.find_session(1).synced is True
        assert state.state_of(1) is SyncState.IDLE
        assert state.error is None

    @pytest.mark.asyncio
    async def test_record_set_matches_session(self, engine, device, store) -> None:
        await engine.refresh_sessions()
        await engine.sync_one(3)

        [workout] = await _stored_workouts(store)
        summary = device.sessions[3]
        assert workout.title == "Rowing Session"
        assert workout.start_time == summary.started_at
        assert workout.duration_minutes == 20
        [distance] = store.records_of(RecordKind.DISTANCE)
        assert distance.value == 5000.0
        [calories] = store.records_of(RecordKind.TOTAL_CALORIES)
        assert calories.value == 310.0

    @pytest.mark.asyncio
    async def test_empty_series_not_written(self, engine, device, store) -> None:
        summary = make_summary(4)
        device.add_session(summary, make_detail(summary, power=False, speed=False))
        await engine.refresh_sessions()

        outcome = await engine.sync_one(4)

        assert outcome.ok
        assert len(store.records_of(RecordKind.HEART_RATE)) == 1
        assert store.records_of(RecordKind.POWER) == []
        assert store.records_of(RecordKind.SPEED) == []

    @pytest.mark.asyncio
    async def test_store_unavailable_short_circuits(self, engine, device, store) -> None:
        await engine.refresh_sessions()
        store.status = StoreAvailability.UNAVAILABLE

        outcome = await engine.sync_one(1)

        assert outcome.status is OutcomeStatus.FAILURE
        assert outcome.error_kind is ErrorKind.AVAILABILITY
        assert device.called("get_detail") == []
        assert device.called("mark_synced") == []
        assert device.sessions[1].synced is False
        assert engine.state.health_available is False
        assert engine.state.error == outcome.message

    @pytest.mark.asyncio
    async def test_store_update_required(self, engine, device, store) -> None:
        store.status = StoreAvailability.UPDATE_REQUIRED

        outcome = await engine.sync_one(1)

        assert outcome.error_kind is ErrorKind.AVAILABILITY
        assert "updated" in outcome.message
        assert device.called("get_detail") == []

    @pytest.mark.asyncio
    async def test_missing_permissions_short_circuits(self, engine, device, store) -> None:
        store.granted = {"read:exercise_session"}

        outcome = await engine.sync_one(1)

        assert outcome.status is OutcomeStatus.FAILURE
        assert outcome.error_kind is ErrorKind.PERMISSION
        assert device.called("get_detail") == []
        assert engine.state.health_permissions_granted is False

    @pytest.mark.asyncio
    async def test_network_error_on_detail(self, engine, device, store) -> None:
        await engine.refresh_sessions()
        device.get_detail = AsyncMock(side_effect=NetworkError("GET api/sessions/1 timed out"))

        outcome = await engine.sync_one(1)

        assert outcome.status is OutcomeStatus.FAILURE
        assert outcome.error_kind is ErrorKind.NETWORK
        assert outcome.message.startswith("Sync failed:")
        assert await _stored_workouts(store) == []
        assert engine.state.state_of(1) is SyncState.IDLE

    @pytest.mark.asyncio
    async def test_protocol_error_on_detail(self, engine, device, store) -> None:
        device.get_detail = AsyncMock(side_effect=ProtocolError("non-JSON body"))

        outcome = await engine.sync_one(1)

        assert outcome.error_kind is ErrorKind.PROTOCOL
        assert await _stored_workouts(store) == []

    @pytest.mark.asyncio
    async def test_store_write_failure_skips_marking(self, engine, device, store) -> None:
        await engine.refresh_sessions()
        store.fail_writes = True

        outcome = await engine.sync_one(1)

        assert outcome.status is OutcomeStatus.FAILURE
        assert outcome.error_kind is ErrorKind.STORE_WRITE
        assert device.called("mark_synced") == []
        assert device.sessions[1].synced is False

    @pytest.mark.asyncio
    async def test_mark_synced_network_error_is_partial(self, engine, device, store) -> None:
        await engine.refresh_sessions()
        device.mark_synced = AsyncMock(side_effect=NetworkError("connection reset"))

        outcome = await engine.sync_one(1)

        assert outcome.status is OutcomeStatus.WARNING
        assert outcome.error_kind is ErrorKind.PARTIAL_SYNC
        assert outcome.ok
        assert len(await _stored_workouts(store)) == 1
        state = engine.state
        assert state.find_session(1).synced is False
        assert state.notice == outcome.message
        assert state.error is None

    @pytest.mark.asyncio
    async def test_mark_synced_rejected_is_partial(self, engine, device) -> None:
        await engine.refresh_sessions()
        device.mark_synced = AsyncMock(return_value=Ack(success=False, error="Flash write failed"))

        outcome = await engine.sync_one(1)

        assert outcome.status is OutcomeStatus.WARNING
        assert "Flash write failed" in outcome.message

    @pytest.mark.asyncio
    async def test_second_sync_of_same_session_is_refused(self, engine, device, store) -> None:
        await engine.refresh_sessions()

        first = await engine.sync_one(1)
        second = await engine.sync_one(1)

        assert first.status is OutcomeStatus.SUCCESS
        assert second.status is OutcomeStatus.FAILURE
        assert second.error_kind is ErrorKind.ALREADY_SYNCED
        assert len(await _stored_workouts(store)) == 1
        assert device.called("get_detail") == [1]

    @pytest.mark.asyncio
    async def test_session_flagged_synced_on_device_is_refused(self, engine, device, store) -> None:
        await engine.refresh_sessions()

        outcome = await engine.sync_one(2)

        assert outcome.error_kind is ErrorKind.ALREADY_SYNCED
        assert device.called("get_detail") == []
        assert await _stored_workouts(store) == []
        assert engine.state.state_of(2) is SyncState.IDLE

    @pytest.mark.asyncio
    async def test_list_refreshed_after_success(self, engine, device) -> None:
        await engine.refresh_sessions()
        refreshes = len(device.called("list_sessions"))

        await engine.sync_one(1)

        assert len(device.called("list_sessions")) == refreshes + 1
        assert engine.state.unsynced_count == 1

    @pytest.mark.asyncio
    async def test_overlapping_sync_is_rejected(self, engine, device, store) -> None:
        await engine.refresh_sessions()
        gate = asyncio.Event()
        original = device.get_detail

        async def gated(session_id):
            await gate.wait()
            return await original(session_id)

        device.get_detail = gated
        first = asyncio.create_task(engine.sync_one(1))
        await _settle()
        assert engine.state.state_of(1) is SyncState.SYNCING

        second = await engine.sync_one(1)
        gate.set()
        result = await first

        assert second.status is OutcomeStatus.FAILURE
        assert second.error_kind is ErrorKind.BUSY
        assert result.status is OutcomeStatus.SUCCESS
        assert len(await _stored_workouts(store)) == 1

    @pytest.mark.asyncio
    async def test_cancellation_clears_transient_state(self, engine, device, store) -> None:
        await engine.refresh_sessions()
        original = device.get_detail

        async def hang(session_id):
            await asyncio.Event().wait()

        device.get_detail = hang
        task = asyncio.create_task(engine.sync_one(1))
        await _settle()
        assert engine.state.state_of(1) is SyncState.SYNCING

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert engine.state.state_of(1) is SyncState.IDLE
        device.get_detail = original
        outcome = await engine.sync_one(1)
        assert outcome.status is OutcomeStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_listener_sees_syncing_then_idle(self, engine) -> None:
        await engine.refresh_sessions()
        seen: list[SyncState] = []
        unsubscribe = engine.subscribe(lambda snap: seen.append(snap.state_of(1)))

        await engine.sync_one(1)
        unsubscribe()

        assert SyncState.SYNCING in seen
        assert seen[-1] is SyncState.IDLE


# ---------------------------------------------------------------------------
# sync_all
# ---------------------------------------------------------------------------


class TestSyncAll:
    @pytest.mark.asyncio
    async def test_syncs_every_unsynced_session(self, engine, device, store) -> None:
        await engine.refresh_sessions()
        assert engine.state.unsynced_count == 2

        result = await engine.sync_all()

        assert result.succeeded == 2
        assert result.failed == 0
        assert result.message is None
        assert [o.target for o in result.outcomes] == [1, 3]
        assert engine.state.unsynced_count == 0
        assert len(await _stored_workouts(store)) == 2
        # Session 2 was already synced and is left alone
        assert 2 not in device.called("get_detail")

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_the_pass(self, engine, device) -> None:
        await engine.refresh_sessions()
        original = device.get_detail

        async def flaky(session_id):
            if session_id == 1:
                raise NetworkError("GET api/sessions/1 timed out")
            return await original(session_id)

        device.get_detail = flaky

        result = await engine.sync_all()

        assert result.succeeded == 1
        assert result.failed == 1
        assert result.message == "1 synced, 1 failed"
        assert engine.state.error == "1 synced, 1 failed"
        assert device.sessions[3].synced is True
        # succeeded + failed covers the snapshot
        assert result.succeeded + result.failed == 2

    @pytest.mark.asyncio
    async def test_uses_snapshot_at_invocation(self, engine, device) -> None:
        await engine.refresh_sessions()
        original = device.get_detail

        async def add_while_running(session_id):
            if session_id == 1:
                device.add_session(make_summary(9))
            return await original(session_id)

        device.get_detail = add_while_running

        result = await engine.sync_all()

        assert [o.target for o in result.outcomes] == [1, 3]
        assert device.sessions[9].synced is False
        assert engine.state.find_session(9) is not None

    @pytest.mark.asyncio
    async def test_items_run_sequentially(self, engine, device) -> None:
        await engine.refresh_sessions()
        original = device.get_detail
        active = 0
        peak = 0

        async def tracked(session_id):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0)
            try:
                return await original(session_id)
            finally:
                active -= 1

        device.get_detail = tracked

        await engine.sync_all()

        assert peak == 1

    @pytest.mark.asyncio
    async def test_nothing_to_sync(self, engine, device) -> None:
        for sid in list(device.sessions):
            device.sessions[sid] = device.sessions[sid].model_copy(update={"synced": True})
        await engine.refresh_sessions()

        result = await engine.sync_all()

        assert result.outcomes == []
        assert result.message == "No unsynced sessions to sync"
        assert engine.state.notice == "No unsynced sessions to sync"
        assert device.called("get_detail") == []

    @pytest.mark.asyncio
    async def test_partial_syncs_count_as_succeeded(self, engine, device) -> None:
        await engine.refresh_sessions()
        device.mark_synced = AsyncMock(side_effect=NetworkError("connection reset"))

        result = await engine.sync_all()

        assert result.succeeded == 2
        assert result.warnings == 2
        assert result.failed == 0

    @pytest.mark.asyncio
    async def test_skips_session_already_syncing(self, engine, device) -> None:
        await engine.refresh_sessions()
        gate = asyncio.Event()
        original = device.get_detail

        async def gated(session_id):
            if session_id == 1:
                await gate.wait()
            return await original(session_id)

        device.get_detail = gated
        single = asyncio.create_task(engine.sync_one(1))
        await _settle()

        bulk = asyncio.create_task(engine.sync_all())
        await _settle()
        gate.set()
        await single
        result = await bulk

        assert [o.target for o in result.outcomes] == [3]
        assert device.called("get_detail").count(1) == 1


# ---------------------------------------------------------------------------
# Device connection
# ---------------------------------------------------------------------------


class TestDeviceConnection:
    @pytest.mark.asyncio
    async def test_refresh_failure_marks_disconnected(self, engine, device) -> None:
        device.list_sessions = AsyncMock(side_effect=NetworkError("Could not reach rower"))

        ok = await engine.refresh_sessions()

        assert ok is False
        state = engine.state
        assert state.is_connected is False
        assert state.is_loading is False
        assert state.error.startswith("Failed to connect:")

    @pytest.mark.asyncio
    async def test_set_device_address_replaces_client(self, engine, device) -> None:
        await engine.refresh_sessions()

        base_url = await engine.set_device_address(" 192.168.4.1 ")

        assert base_url == "http://192.168.4.1/"
        assert device.closed is True
        state = engine.state
        assert state.device_address == "http://192.168.4.1/"
        assert state.sessions == []
        assert state.is_connected is False

    @pytest.mark.asyncio
    async def test_set_device_address_rejects_empty(self, engine, device) -> None:
        with pytest.raises(ValueError):
            await engine.set_device_address("   ")
        assert device.closed is False

    @pytest.mark.asyncio
    async def test_check_device_status(self, engine) -> None:
        status = await engine.check_device_status()

        assert status.online is True
        assert status.session_count == 3
        assert engine.state.device_status == status
        assert engine.state.is_connected is True

    @pytest.mark.asyncio
    async def test_check_device_status_failure(self, engine, device) -> None:
        device.get_status = AsyncMock(side_effect=ProtocolError("returned HTTP 500"))

        assert await engine.check_device_status() is None
        assert engine.state.device_status is None
        assert "device status" in engine.state.error

    @pytest.mark.asyncio
    async def test_clear_error(self, engine, device) -> None:
        device.list_sessions = AsyncMock(side_effect=NetworkError("down"))
        await engine.refresh_sessions()

        engine.clear_error()

        assert engine.state.error is None
        assert engine.state.notice is None
