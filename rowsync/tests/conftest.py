"""Shared fixtures, a fake rowing monitor, and session factories."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from rowsync.config import Settings
from rowsync.device.address import normalize_address
from rowsync.device.errors import ProtocolError
from rowsync.healthstore.memory import InMemoryHealthStore
from rowsync.models.device import (
    Ack,
    DeviceStatus,
    HeartRateSample,
    PowerSample,
    SessionDetail,
    SessionSummary,
    SpeedSample,
)
from rowsync.sync.engine import SessionSyncEngine

# Two days ago keeps every session inside the default 365-day lookback
BASE_START = (datetime.now(timezone.utc) - timedelta(days=2)).replace(microsecond=0)
BASE_START_MS = int(BASE_START.timestamp()) * 1000
SESSION_DURATION_S = 1200


# ---------------------------------------------------------------------------
# Session factories
# ---------------------------------------------------------------------------


def make_summary(session_id: int, synced: bool = False, **overrides) -> SessionSummary:
    """A realistic 20-minute, 5 km rowing session."""
    fields = {
        "id": session_id,
        "start_time": BASE_START_MS + session_id * 3_600_000,
        "duration": SESSION_DURATION_S,
        "distance": 5000.0,
        "strokes": 480,
        "calories": 310,
        "avg_power": 182.5,
        "avg_pace": 120.0,
        "avg_heart_rate": 148.0,
        "max_heart_rate": 171.0,
        "synced": synced,
        "hr_sample_count": 3,
        "drag_factor": 125.0,
    }
    fields.update(overrides)
    return SessionSummary(**fields)


def make_detail(
    summary: SessionSummary,
    heart_rate: bool = True,
    power: bool = True,
    speed: bool = True,
) -> SessionDetail:
    start = summary.start_time
    return SessionDetail(
        **summary.model_dump(),
        heart_rate_samples=(
            [HeartRateSample(time=start + i * 1000, bpm=140 + i) for i in range(3)]
            if heart_rate else []
        ),
        power_samples=(
            [PowerSample(time=start + i * 1000, watts=180.0 + i) for i in range(3)]
            if power else []
        ),
        speed_samples=(
            [SpeedSample(time=start + i * 1000, meters_per_second=4.1) for i in range(3)]
            if speed else []
        ),
    )


# ---------------------------------------------------------------------------
# Fake rowing monitor
# ---------------------------------------------------------------------------


class FakeDeviceClient:
    """In-memory stand-in for ``DeviceClient`` that behaves like the monitor.

    ``mark_synced`` flips the stored flag and ``delete_session`` removes the
    session, so a refresh after either reflects the change.  Every call is
    recorded in ``calls``.
    """

    def __init__(
        self,
        base_url: str = "http://rower.local/",
        sessions: list[SessionSummary] | None = None,
    ) -> None:
        self.base_url = base_url
        self.sessions: dict[int, SessionSummary] = {s.id: s for s in sessions or []}
        self.details: dict[int, SessionDetail] = {}
        self.calls: list[tuple[str, int | None]] = []
        self.closed = False

    def add_session(self, summary: SessionSummary, detail: SessionDetail | None = None) -> None:
        self.sessions[summary.id] = summary
        if detail is not None:
            self.details[summary.id] = detail

    def called(self, name: str) -> list[int | None]:
        return [arg for call, arg in self.calls if call == name]

    async def get_status(self) -> DeviceStatus:
        self.calls.append(("get_status", None))
        return DeviceStatus(
            online=True, workout_in_progress=False, session_count=len(self.sessions)
        )

    async def list_sessions(self) -> list[SessionSummary]:
        self.calls.append(("list_sessions", None))
        return [self.sessions[k] for k in sorted(self.sessions)]

    async def get_detail(self, session_id: int) -> SessionDetail:
        self.calls.append(("get_detail", session_id))
        if session_id not in self.sessions:
            raise ProtocolError(f"GET api/sessions/{session_id} returned HTTP 404")
        return self.details.get(session_id) or make_detail(self.sessions[session_id])

    async def mark_synced(self, session_id: int) -> Ack:
        self.calls.append(("mark_synced", session_id))
        current = self.sessions[session_id]
        self.sessions[session_id] = current.model_copy(update={"synced": True})
        return Ack(status="ok")

    async def delete_session(self, session_id: int) -> Ack:
        self.calls.append(("delete_session", session_id))
        if self.sessions.pop(session_id, None) is None:
            return Ack(success=False, error="Session not found")
        return Ack(success=True)

    async def aclose(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return Settings(device_address="rower.local", workout_title="Rowing Session")


@pytest.fixture
def device() -> FakeDeviceClient:
    """Three sessions on the monitor: 1 and 3 unsynced, 2 already synced."""
    return FakeDeviceClient(
        sessions=[make_summary(1), make_summary(2, synced=True), make_summary(3)]
    )


@pytest.fixture
def store() -> InMemoryHealthStore:
    return InMemoryHealthStore()


@pytest.fixture
def engine(
    device: FakeDeviceClient, store: InMemoryHealthStore, settings: Settings
) -> SessionSyncEngine:
    return SessionSyncEngine(
        client=device,  # type: ignore[arg-type]
        store=store,
        settings=settings,
        client_factory=lambda address, _s: FakeDeviceClient(normalize_address(address)),  # type: ignore[arg-type,return-value]
        tz=timezone.utc,
    )
