"""Session sync engine.

Copies rowing sessions from the monitor into the health store and keeps the
two sides reconciled:

1. Check health-store availability and permissions (short-circuit on failure)
2. Fetch the session detail from the monitor
3. Build and insert the health record set
4. Best-effort: mark the session synced on the monitor (soft step)
5. Refresh the session list

Every command runs through one ``asyncio.Lock``, so commands execute one at
a time in arrival order.  Overlapping commands for the same session are
rejected at entry rather than queued, which keeps a session from ever being
synced twice in parallel.  Bulk commands work on the session list as it was
when they were invoked and process it sequentially.

Usage::

    engine = SessionSyncEngine.from_settings(store)
    await engine.refresh_sessions()
    result = await engine.sync_all()
    logger.info("%d synced, %d failed", result.succeeded, result.failed)
"""

from __future__ import annotations

import asyncio
import logging
from datetime import tzinfo
from typing import Callable

from rowsync.config import Settings, get_settings
from rowsync.device.client import DeviceClient, build_device_client
from rowsync.device.errors import DeviceError
from rowsync.healthstore.base import (
    ASSOCIATED_KINDS,
    HealthStore,
    HealthWorkout,
    StoreAvailability,
    TimeWindow,
    rowing_only,
)
from rowsync.healthstore.records import build_record_set
from rowsync.models.device import DeviceStatus
from rowsync.sync.outcome import BulkResult, ErrorKind, Outcome, classify_device_error
from rowsync.sync.state import Listener, ProjectionPublisher, StateProjection, SyncState

logger = logging.getLogger("rowsync.sync.engine")

ClientFactory = Callable[[str, Settings], DeviceClient]


class SessionSyncEngine:
    """Orchestrate the rowing monitor and the health store.

    The engine owns its ``DeviceClient``; pointing it at another monitor
    replaces the client instead of mutating it.
    """

    def __init__(
        self,
        client: DeviceClient,
        store: HealthStore,
        settings: Settings | None = None,
        client_factory: ClientFactory = build_device_client,
        tz: tzinfo | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            client:         Client for the current monitor.
            store:          Health store to copy sessions into.
            settings:       App settings (workout title, lookback window).
            client_factory: Builds a client from an address; used by
                            ``set_device_address``.
            tz:             Zone for record offsets; system zone if None.
        """
        self._settings = settings or get_settings()
        self._client = client
        self._client_factory = client_factory
        self._store = store
        self._tz = tz
        self._lock = asyncio.Lock()
        self._inflight: set[tuple[SyncState, int | str]] = set()
        self._publisher = ProjectionPublisher(
            StateProjection(device_address=client.base_url)
        )

    @classmethod
    def from_settings(
        cls, store: HealthStore, settings: Settings | None = None
    ) -> "SessionSyncEngine":
        s = settings or get_settings()
        return cls(build_device_client(s.device_address, s), store, s)

    # ------------------------------------------------------------------
    # Projection access
    # ------------------------------------------------------------------

    @property
    def state(self) -> StateProjection:
        """A copy of the current projection."""
        return self._publisher.current.snapshot()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self._publisher.subscribe(listener)

    @property
    def _p(self) -> StateProjection:
        return self._publisher.current

    def clear_error(self) -> None:
        self._p.error = None
        self._p.notice = None
        self._publisher.publish()

    # ------------------------------------------------------------------
    # Device connection
    # ------------------------------------------------------------------

    async def set_device_address(self, address: str) -> str:
        """Point the engine at another monitor.

        The session list and device status belong to the old monitor and are
        cleared.

        Returns:
            The normalized base URL.

        Raises:
            ValueError: If the address is empty.
        """
        async with self._lock:
            new_client = self._client_factory(address, self._settings)
            old_client, self._client = self._client, new_client
            await old_client.aclose()

            p = self._p
            p.device_address = new_client.base_url
            p.is_connected = False
            p.sessions = []
            p.device_status = None
            self._publisher.publish()
            return new_client.base_url

    async def refresh_sessions(self) -> bool:
        """Reload the session list from the monitor.

        Returns:
            True if the monitor answered.
        """
        async with self._lock:
            self._p.error = None
            return await self._refresh()

    async def check_device_status(self) -> DeviceStatus | None:
        async with self._lock:
            p = self._p
            try:
                status = await self._client.get_status()
            except DeviceError as exc:
                logger.error("Status check failed for %s: %s", p.device_address, exc)
                p.device_status = None
                p.is_connected = False
                p.error = f"Failed to read device status: {exc}"
                self._publisher.publish()
                return None

            p.device_status = status
            p.is_connected = status.online
            self._publisher.publish()
            return status

    async def check_health_permissions(self) -> Outcome:
        """Re-read health-store availability and permissions into the projection."""
        async with self._lock:
            blocked = await self._check_health_store(None)
            self._publisher.publish()
            return blocked or Outcome.success(None)

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    async def sync_one(self, session_id: int) -> Outcome:
        """Copy one session into the health store.

        Returns one of:
            SUCCESS                  — stored and marked synced on the monitor
            WARNING (PARTIAL_SYNC)   — stored, but the monitor was not updated
            FAILURE                  — nothing stored (including ALREADY_SYNCED
                                       for a session the monitor flags synced)
        """
        if not self._reserve(SyncState.SYNCING, session_id):
            return self._busy(session_id, f"Session {session_id} is already syncing")
        try:
            async with self._lock:
                return await self._sync_one(session_id)
        finally:
            self._release(SyncState.SYNCING, session_id)

    async def sync_all(self) -> BulkResult:
        """Sync every session that was unsynced when this call was made.

        Items run one after another; a failed item never stops the pass.
        """
        snapshot = [s.id for s in self._p.sessions if not s.synced]
        reserved = [sid for sid in snapshot if self._reserve(SyncState.SYNCING, sid)]
        if len(reserved) < len(snapshot):
            logger.info(
                "Sync all: skipping %d session(s) already syncing",
                len(snapshot) - len(reserved),
            )

        result = BulkResult()
        try:
            async with self._lock:
                if not reserved:
                    result.message = "No unsynced sessions to sync"
                    self._p.notice = result.message
                    self._publisher.publish()
                    return result

                logger.info("Sync all: %d session(s)", len(reserved))
                for sid in reserved:
                    result.add(await self._sync_one(sid))
                    self._release(SyncState.SYNCING, sid)

                if result.failed:
                    result.message = f"{result.succeeded} synced, {result.failed} failed"
                    self._p.error = result.message
                    self._publisher.publish()
                logger.info(
                    "Sync all complete: %d synced (%d with warnings), %d failed",
                    result.succeeded, result.warnings, result.failed,
                )
                return result
        finally:
            for sid in reserved:
                self._release(SyncState.SYNCING, sid)

    async def _sync_one(self, session_id: int) -> Outcome:
        session = self._p.find_session(session_id)
        if session is not None and session.synced:
            return self._fail(
                session_id,
                ErrorKind.ALREADY_SYNCED,
                f"Session {session_id} is already synced to the health store",
            )

        blocked = await self._check_health_store(session_id)
        if blocked is not None:
            return self._report(blocked)

        self._set_session_state(session_id, SyncState.SYNCING)
        try:
            try:
                detail = await self._client.get_detail(session_id)
            except DeviceError as exc:
                return self._fail(
                    session_id, classify_device_error(exc), f"Sync failed: {exc}"
                )

            record_set = build_record_set(detail, self._settings.workout_title, self._tz)
            if not await self._store.insert(record_set):
                return self._fail(
                    session_id,
                    ErrorKind.STORE_WRITE,
                    "Failed to write session to the health store. Please check permissions.",
                )

            outcome = await self._mark_synced(session_id)
            await self._refresh()
            return outcome
        finally:
            self._clear_session_state(session_id)

    async def _mark_synced(self, session_id: int) -> Outcome:
        # The health-store write already happened; nothing here undoes it
        try:
            ack = await self._client.mark_synced(session_id)
        except DeviceError as exc:
            return self._warn(
                session_id,
                f"Synced to the health store, but couldn't mark session {session_id} "
                f"on the device: {exc}",
            )
        if not ack.ok:
            return self._warn(
                session_id,
                f"Synced to the health store, but device marking failed: {ack.reason}",
            )

        logger.info("Session %d synced to the health store", session_id)
        return Outcome.success(session_id)

    # ------------------------------------------------------------------
    # Device deletes
    # ------------------------------------------------------------------

    async def delete_remote_session(self, session_id: int) -> Outcome:
        """Delete one session from the monitor.

        Only sessions the engine has seen flagged as synced can be deleted.
        """
        if not self._reserve(SyncState.DELETING, session_id):
            return self._busy(session_id, f"Session {session_id} is already being deleted")
        try:
            async with self._lock:
                return await self._delete_remote(session_id, refresh=True)
        finally:
            self._release(SyncState.DELETING, session_id)

    async def delete_all_synced_remote(self) -> BulkResult:
        """Delete every session that was synced when this call was made.

        Continues past individual failures and refreshes the list once at
        the end.
        """
        snapshot = [s.id for s in self._p.sessions if s.synced]
        reserved = [sid for sid in snapshot if self._reserve(SyncState.DELETING, sid)]

        result = BulkResult()
        try:
            async with self._lock:
                if not reserved:
                    result.message = "No synced sessions to delete"
                    self._p.notice = result.message
                    self._publisher.publish()
                    return result

                for sid in reserved:
                    result.add(await self._delete_remote(sid, refresh=False))
                    self._release(SyncState.DELETING, sid)

                await self._refresh()
                if result.failed:
                    result.message = f"{result.succeeded} deleted, {result.failed} failed"
                    self._p.error = result.message
                    self._publisher.publish()
                logger.info(
                    "Deleted %d synced session(s) from the device, %d failed",
                    result.succeeded, result.failed,
                )
                return result
        finally:
            for sid in reserved:
                self._release(SyncState.DELETING, sid)

    async def _delete_remote(self, session_id: int, refresh: bool) -> Outcome:
        session = self._p.find_session(session_id)
        if session is None:
            return self._fail(
                session_id,
                ErrorKind.DELETE_BLOCKED,
                f"Session {session_id} is not in the session list; refresh before deleting",
            )
        if not session.synced:
            return self._fail(
                session_id,
                ErrorKind.DELETE_BLOCKED,
                f"Session {session_id} has not been synced to the health store "
                "and cannot be deleted",
            )

        self._set_session_state(session_id, SyncState.DELETING)
        try:
            try:
                ack = await self._client.delete_session(session_id)
            except DeviceError as exc:
                return self._fail(
                    session_id,
                    classify_device_error(exc),
                    f"Failed to delete session: {exc}",
                )
            if not ack.deleted:
                return self._fail(
                    session_id, ErrorKind.PROTOCOL, f"Failed to delete session: {ack.reason}"
                )

            logger.info("Deleted session %d from the device", session_id)
            if refresh:
                await self._refresh()
            return Outcome.success(session_id)
        finally:
            self._clear_session_state(session_id)

    # ------------------------------------------------------------------
    # Health-store workouts
    # ------------------------------------------------------------------

    async def load_health_workouts(self) -> list[HealthWorkout]:
        """Read rowing workouts back from the health store, newest first."""
        async with self._lock:
            blocked = await self._check_health_store(None)
            if blocked is not None:
                self._report(blocked)
                return []
            return await self._reload_workouts()

    async def delete_health_workout(self, external_id: str) -> Outcome:
        """Delete one rowing workout and the records written with it."""
        if not self._reserve(SyncState.DELETING, external_id):
            return self._busy(external_id, f"Workout {external_id} is already being deleted")
        try:
            async with self._lock:
                blocked = await self._check_health_store(external_id)
                if blocked is not None:
                    return self._report(blocked)

                outcome = await self._delete_workout(
                    external_id, await self._list_workouts()
                )
                await self._reload_workouts()
                return outcome
        finally:
            self._release(SyncState.DELETING, external_id)

    async def delete_all_health_workouts(self) -> BulkResult:
        """Delete every rowing workout in the lookback window, one at a time.

        Independent of the monitor: synced flags on the device are untouched.
        """
        result = BulkResult()
        async with self._lock:
            blocked = await self._check_health_store(None)
            if blocked is not None:
                result.add(self._report(blocked))
                result.message = blocked.message
                return result

            workouts = await self._list_workouts()
            if not workouts:
                result.message = "No rowing workouts to delete"
                self._p.notice = result.message
                self._publisher.publish()
                return result

            for workout in workouts:
                if not self._reserve(SyncState.DELETING, workout.external_id):
                    continue
                try:
                    result.add(await self._delete_workout(workout.external_id, workouts))
                finally:
                    self._release(SyncState.DELETING, workout.external_id)

            await self._reload_workouts()
            logger.info("Deleted %d rowing workout(s) from the health store", result.succeeded)
            if result.failed:
                result.message = f"{result.succeeded} deleted, {result.failed} failed"
                self._p.error = result.message
                self._publisher.publish()
            return result

    async def _list_workouts(self) -> list[HealthWorkout]:
        window = TimeWindow.lookback(self._settings.health_lookback_days)
        return rowing_only(await self._store.list_exercise_sessions(window))

    async def _reload_workouts(self) -> list[HealthWorkout]:
        p = self._p
        p.is_loading_health_workouts = True
        self._publisher.publish()
        try:
            workouts = await self._list_workouts()
        finally:
            p.is_loading_health_workouts = False

        p.health_workouts = workouts
        self._publisher.publish()
        return workouts

    async def _delete_workout(
        self, external_id: str, workouts: list[HealthWorkout]
    ) -> Outcome:
        target = next((w for w in workouts if w.external_id == external_id), None)
        if target is None:
            return self._fail(
                external_id,
                ErrorKind.NOT_FOUND,
                f"No rowing workout {external_id} in the health store",
            )

        p = self._p
        p.workout_states[external_id] = SyncState.DELETING
        self._publisher.publish()
        try:
            if not await self._store.delete_exercise_session(external_id):
                return self._fail(
                    external_id,
                    ErrorKind.STORE_WRITE,
                    "Failed to delete workout from the health store",
                )

            window = TimeWindow(target.start_time, target.end_time)
            for kind in ASSOCIATED_KINDS:
                if not await self._store.delete_records_in_range(kind, window):
                    logger.warning(
                        "Could not delete %s records for workout %s", kind.value, external_id
                    )

            logger.info("Deleted workout %s and associated records", external_id)
            return Outcome.success(external_id)
        finally:
            p.workout_states.pop(external_id, None)
            self._publisher.publish()

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    async def _check_health_store(self, target: int | str | None) -> Outcome | None:
        """Return a failure if the store cannot be used, else None."""
        p = self._p
        availability = await self._store.availability()
        p.health_available = availability is StoreAvailability.AVAILABLE
        if availability is StoreAvailability.UPDATE_REQUIRED:
            return Outcome.failure(
                target,
                ErrorKind.AVAILABILITY,
                "The health store needs to be updated before it can be used",
            )
        if availability is not StoreAvailability.AVAILABLE:
            return Outcome.failure(
                target, ErrorKind.AVAILABILITY, "The health store is not available on this device"
            )

        granted = await self._store.has_permissions()
        p.health_permissions_granted = granted
        if not granted:
            return Outcome.failure(
                target, ErrorKind.PERMISSION, "Health store permissions have not been granted"
            )
        return None

    async def _refresh(self) -> bool:
        p = self._p
        p.is_loading = True
        self._publisher.publish()
        try:
            sessions = await self._client.list_sessions()
        except DeviceError as exc:
            logger.error("Failed to connect to %s: %s", p.device_address, exc)
            p.is_connected = False
            p.error = f"Failed to connect: {exc}"
            ok = False
        else:
            p.sessions = sessions
            p.is_connected = True
            ok = True
        finally:
            p.is_loading = False
            self._publisher.publish()
        return ok

    def _reserve(self, state: SyncState, target: int | str) -> bool:
        key = (state, target)
        if key in self._inflight:
            return False
        self._inflight.add(key)
        return True

    def _release(self, state: SyncState, target: int | str) -> None:
        self._inflight.discard((state, target))

    def _busy(self, target: int | str, message: str) -> Outcome:
        logger.info("Rejected overlapping command: %s", message)
        return Outcome.failure(target, ErrorKind.BUSY, message)

    def _set_session_state(self, session_id: int, state: SyncState) -> None:
        self._p.session_states[session_id] = state
        self._publisher.publish()

    def _clear_session_state(self, session_id: int) -> None:
        self._p.session_states.pop(session_id, None)
        self._publisher.publish()

    def _report(self, outcome: Outcome) -> Outcome:
        logger.error("%s: %s", outcome.target, outcome.message)
        self._p.error = outcome.message
        self._publisher.publish()
        return outcome

    def _fail(self, target: int | str, kind: ErrorKind, message: str) -> Outcome:
        return self._report(Outcome.failure(target, kind, message))

    def _warn(self, session_id: int, message: str) -> Outcome:
        logger.warning("Session %d: %s", session_id, message)
        self._p.notice = message
        self._publisher.publish()
        return Outcome.warning(session_id, ErrorKind.PARTIAL_SYNC, message)

    async def aclose(self) -> None:
        await self._client.aclose()
