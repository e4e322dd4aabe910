"""Pydantic models for the sync command API."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from rowsync.healthstore.base import ExerciseType
from rowsync.models.base import RowsyncBase
from rowsync.models.device import DeviceStatus, SessionSummary
from rowsync.sync.outcome import ErrorKind, OutcomeStatus
from rowsync.sync.state import SyncState


# ---------- Outcomes ----------

class OutcomeRead(RowsyncBase):
    target: int | str | None = None
    status: OutcomeStatus
    error_kind: ErrorKind | None = None
    message: str | None = None


class BulkResultRead(RowsyncBase):
    outcomes: list[OutcomeRead] = Field(default_factory=list)
    succeeded: int
    failed: int
    warnings: int
    message: str | None = None


# ---------- Health workouts ----------

class HealthWorkoutRead(RowsyncBase):
    external_id: str
    title: str | None = None
    exercise_type: ExerciseType
    exercise_type_name: str
    start_time: datetime
    end_time: datetime
    duration_minutes: int


# ---------- Device ----------

class DeviceAddressUpdate(RowsyncBase):
    address: str = Field(min_length=1, max_length=255)


class DeviceAddressRead(RowsyncBase):
    device_address: str


# ---------- State projection ----------

class StateRead(RowsyncBase):
    device_address: str
    is_loading: bool
    is_connected: bool
    sessions: list[SessionSummary] = Field(default_factory=list)
    unsynced_count: int
    device_status: DeviceStatus | None = None
    session_states: dict[int, SyncState] = Field(default_factory=dict)
    error: str | None = None
    notice: str | None = None
    health_available: bool
    health_permissions_granted: bool
    health_workouts: list[HealthWorkoutRead] = Field(default_factory=list)
    is_loading_health_workouts: bool
    workout_states: dict[str, SyncState] = Field(default_factory=dict)
