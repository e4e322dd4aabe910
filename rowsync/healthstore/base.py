"""Base class and record models for the health data store.

The health store is the phone-resident, permission-gated repository of
exercise records.  RowSync only ever talks to it through the ``HealthStore``
interface below; the sync engine never assumes a particular backend.

Every store implementation must fail closed: when the platform is
unavailable or permissions are missing, operations return ``False`` or an
empty list instead of raising.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

logger = logging.getLogger("rowsync.healthstore")


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class StoreAvailability(str, Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    UPDATE_REQUIRED = "update_required"


class ExerciseType(str, Enum):
    ROWING_MACHINE = "rowing_machine"
    ROWING = "rowing"
    RUNNING = "running"
    CYCLING = "cycling"
    OTHER = "other"


#: Exercise types RowSync writes and is allowed to read back or delete.
ROWING_TYPES: frozenset[ExerciseType] = frozenset(
    {ExerciseType.ROWING_MACHINE, ExerciseType.ROWING}
)


class RecordKind(str, Enum):
    EXERCISE_SESSION = "exercise_session"
    DISTANCE = "distance"
    TOTAL_CALORIES = "total_calories"
    HEART_RATE = "heart_rate"
    POWER = "power"
    SPEED = "speed"


#: Kinds written alongside an exercise session and sharing its time window.
ASSOCIATED_KINDS: tuple[RecordKind, ...] = (
    RecordKind.DISTANCE,
    RecordKind.TOTAL_CALORIES,
    RecordKind.HEART_RATE,
    RecordKind.POWER,
    RecordKind.SPEED,
)


def required_permissions() -> frozenset[str]:
    """Return the read + write permission for every record kind."""
    return frozenset(
        f"{access}:{kind.value}" for kind in RecordKind for access in ("read", "write")
    )


# ---------------------------------------------------------------------------
# Record models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TimeWindow:
    """Closed interval ``[start, end]`` in aware UTC datetimes."""

    start: datetime
    end: datetime

    @classmethod
    def lookback(cls, days: int, now: datetime | None = None) -> "TimeWindow":
        end = now or datetime.now(timezone.utc)
        return cls(start=end - timedelta(days=days), end=end)

    def contains(self, start: datetime, end: datetime) -> bool:
        return self.start <= start and end <= self.end


@dataclass(frozen=True)
class ExerciseSessionRecord:
    start_time: datetime
    end_time: datetime
    start_zone_offset: timedelta | None
    end_zone_offset: timedelta | None
    exercise_type: ExerciseType
    title: str


@dataclass(frozen=True)
class IntervalRecord:
    """A scalar total over the session window (distance or calories).

    ``value`` is meters for DISTANCE and kilocalories for TOTAL_CALORIES.
    """

    kind: RecordKind
    start_time: datetime
    end_time: datetime
    value: float


@dataclass(frozen=True)
class Sample:
    time: datetime
    value: float


@dataclass(frozen=True)
class SeriesRecord:
    """A time series over the session window.

    Sample units: bpm for HEART_RATE, watts for POWER, meters per second
    for SPEED.
    """

    kind: RecordKind
    start_time: datetime
    end_time: datetime
    samples: tuple[Sample, ...]


@dataclass(frozen=True)
class HealthRecordSet:
    """Everything written to the store for one rowing session.

    Attributes:
        session_id: Device session id the set was built from (never sent to the store).
        exercise:   The exercise-session record.
        distance:   Distance total over the window.
        calories:   Calories total over the window.
        series:     Zero or more HR / power / speed series; empty series are omitted.
    """

    session_id: int
    exercise: ExerciseSessionRecord
    distance: IntervalRecord
    calories: IntervalRecord
    series: tuple[SeriesRecord, ...] = ()

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(self.exercise.start_time, self.exercise.end_time)

    @property
    def kinds(self) -> list[RecordKind]:
        return [
            RecordKind.EXERCISE_SESSION,
            self.distance.kind,
            self.calories.kind,
            *(s.kind for s in self.series),
        ]


@dataclass
class HealthWorkout:
    """An exercise-session record as read back from the store.

    Attributes:
        external_id:   Identifier assigned by the store on insert.
        title:         Record title (may be None for records from other apps).
        exercise_type: Exercise type of the record.
        start_time:    Aware UTC start.
        end_time:      Aware UTC end.
    """

    external_id: str
    title: str | None
    exercise_type: ExerciseType
    start_time: datetime
    end_time: datetime

    @property
    def duration_minutes(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)

    @property
    def exercise_type_name(self) -> str:
        if self.exercise_type is ExerciseType.ROWING_MACHINE:
            return "Rowing Machine"
        if self.exercise_type is ExerciseType.ROWING:
            return "Rowing"
        return f"Exercise ({self.exercise_type.value})"


def rowing_only(workouts: list[HealthWorkout]) -> list[HealthWorkout]:
    """Keep rowing workouts, newest first.  Other exercise types are dropped."""
    return sorted(
        (w for w in workouts if w.exercise_type in ROWING_TYPES),
        key=lambda w: w.start_time,
        reverse=True,
    )


# ---------------------------------------------------------------------------
# Abstract store
# ---------------------------------------------------------------------------


class HealthStore(ABC):
    """Abstract base class for health data stores.

    Subclasses must implement:
        - is_available()
        - has_permissions()
        - insert()
        - list_exercise_sessions()
        - delete_exercise_session()
        - delete_records_in_range()

    Optional override:
        - availability()  (distinguishes "missing" from "needs update")
    """

    #: Human-readable name for logging and messages.
    DISPLAY_NAME: str = "Health store"

    @abstractmethod
    async def is_available(self) -> bool:
        """Return True if the health platform is installed and usable."""

    @abstractmethod
    async def has_permissions(self) -> bool:
        """Return True if every permission in ``required_permissions()`` is granted."""

    @abstractmethod
    async def insert(self, record_set: HealthRecordSet) -> bool:
        """Insert all records of a set atomically.

        Returns:
            True if the whole set was written, False otherwise.
        """

    @abstractmethod
    async def list_exercise_sessions(self, window: TimeWindow) -> list[HealthWorkout]:
        """Return every exercise session (of any type) inside ``window``."""

    @abstractmethod
    async def delete_exercise_session(self, external_id: str) -> bool:
        """Delete one exercise-session record by its store id.

        Returns:
            True if a record was deleted.
        """

    @abstractmethod
    async def delete_records_in_range(self, kind: RecordKind, window: TimeWindow) -> bool:
        """Delete every record of ``kind`` lying inside ``window``.

        Returns:
            True if the deletion request was accepted (even if nothing matched).
        """

    async def availability(self) -> StoreAvailability:
        """Report why the store is unavailable, if it is.

        Default maps ``is_available()`` onto AVAILABLE / UNAVAILABLE.
        Override in stores that can tell an outdated platform apart.
        """
        if await self.is_available():
            return StoreAvailability.AVAILABLE
        return StoreAvailability.UNAVAILABLE
