"""Observable state projection for the presentation layer.

The engine is the only writer.  Readers get copies via ``snapshot()`` or by
subscribing a listener, which is called with a fresh snapshot after every
published change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable

from rowsync.healthstore.base import HealthWorkout
from rowsync.models.device import DeviceStatus, SessionSummary

logger = logging.getLogger("rowsync.sync.state")


class SyncState(str, Enum):
    IDLE = "idle"
    SYNCING = "syncing"
    DELETING = "deleting"


@dataclass
class StateProjection:
    """Point-in-time view of everything the engine knows.

    Attributes:
        device_address:             Normalized monitor base URL.
        is_loading:                 A session list refresh is in progress.
        is_connected:               The last refresh reached the monitor.
        sessions:                   Sessions from the last successful refresh.
        device_status:              Last status reported by the monitor.
        session_states:             Transient state per device session id.
        error:                      Last hard error, for display.
        notice:                     Last warning or informational message.
        health_available:           Health platform reported available.
        health_permissions_granted: All required permissions granted.
        health_workouts:            Rowing workouts read back from the store.
        is_loading_health_workouts: A workout list load is in progress.
        workout_states:             Transient state per store workout id.
    """

    device_address: str = ""
    is_loading: bool = False
    is_connected: bool = False
    sessions: list[SessionSummary] = field(default_factory=list)
    device_status: DeviceStatus | None = None
    session_states: dict[int, SyncState] = field(default_factory=dict)
    error: str | None = None
    notice: str | None = None
    health_available: bool = False
    health_permissions_granted: bool = False
    health_workouts: list[HealthWorkout] = field(default_factory=list)
    is_loading_health_workouts: bool = False
    workout_states: dict[str, SyncState] = field(default_factory=dict)

    def state_of(self, session_id: int) -> SyncState:
        return self.session_states.get(session_id, SyncState.IDLE)

    def find_session(self, session_id: int) -> SessionSummary | None:
        return next((s for s in self.sessions if s.id == session_id), None)

    @property
    def unsynced_count(self) -> int:
        return sum(1 for s in self.sessions if not s.synced)

    def snapshot(self) -> "StateProjection":
        # Session models are frozen; only the containers need copying
        return replace(
            self,
            sessions=list(self.sessions),
            session_states=dict(self.session_states),
            health_workouts=list(self.health_workouts),
            workout_states=dict(self.workout_states),
        )


Listener = Callable[[StateProjection], None]


class ProjectionPublisher:
    """Holds the live projection and fans out snapshots to listeners."""

    def __init__(self, projection: StateProjection | None = None) -> None:
        self.current = projection or StateProjection()
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def publish(self) -> None:
        if not self._listeners:
            return
        snap = self.current.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception as exc:
                logger.warning("State listener %r failed: %s", listener, exc)
