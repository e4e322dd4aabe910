"""Pydantic models for rowing monitor API responses."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from pydantic import Field

from rowsync.models.base import DeviceModel


def epoch_ms_to_datetime(value: int) -> datetime:
    """Convert a device epoch-millisecond timestamp to an aware UTC datetime."""
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


# ---------- Device status ----------

class DeviceStatus(DeviceModel):
    online: bool
    workout_in_progress: bool
    session_count: int = 0
    current_heart_rate: int = 0
    free_heap: int = 0
    uptime: int = 0
    ble_connected: bool = False
    ws_clients: int = 0
    # Present only while a workout is in progress
    current_session_id: int | None = None
    current_distance: float | None = None
    current_strokes: int | None = None
    current_power: float | None = None
    current_pace: float | None = None
    current_stroke_rate: int | None = None
    duration: int | None = None
    hr_samples: int | None = None


# ---------- Sessions ----------

class SessionSummary(DeviceModel):
    """One recorded session as listed by the monitor.

    Units: ``start_time`` epoch ms, ``duration`` seconds, ``distance`` meters,
    ``avg_pace`` seconds per 500 m, ``avg_power`` watts.
    """

    id: int
    start_time: int
    duration: int
    distance: float
    strokes: int
    calories: int
    avg_power: float
    avg_pace: float
    avg_heart_rate: float = 0.0
    max_heart_rate: float = 0.0
    synced: bool = False
    hr_sample_count: int = 0
    drag_factor: float = 0.0

    @property
    def started_at(self) -> datetime:
        return epoch_ms_to_datetime(self.start_time)

    @property
    def ended_at(self) -> datetime:
        return self.started_at + timedelta(seconds=self.duration)


class SessionsResponse(DeviceModel):
    sessions: list[SessionSummary] = Field(default_factory=list)


class HeartRateSample(DeviceModel):
    time: int
    bpm: int


class PowerSample(DeviceModel):
    time: int
    watts: float


class SpeedSample(DeviceModel):
    time: int
    meters_per_second: float


class SessionDetail(SessionSummary):
    """A session with its three sample series; fetched only when syncing."""

    heart_rate_samples: list[HeartRateSample] = Field(default_factory=list)
    power_samples: list[PowerSample] = Field(default_factory=list)
    speed_samples: list[SpeedSample] = Field(default_factory=list)


# ---------- Command acknowledgements ----------

class Ack(DeviceModel):
    """Generic acknowledgement returned by mark-synced and delete."""

    status: str | None = None
    success: bool | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        """Lenient rule used for mark-synced: only an explicit rejection fails."""
        if self.error:
            return False
        if self.success is not None:
            return self.success
        if self.status is not None:
            return self.status.lower() in ("ok", "success")
        return True

    @property
    def deleted(self) -> bool:
        """Strict rule used for deletes: the monitor must confirm explicitly."""
        return not self.error and (self.success is True or self.status == "ok")

    @property
    def reason(self) -> str:
        return self.error or self.status or "Unknown error"
