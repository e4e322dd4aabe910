"""In-process health store.

Keeps records in memory with the same fail-closed behaviour as a platform
store.  Availability, granted permissions and write failures are
configurable so callers can exercise every branch of the sync engine.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from rowsync.healthstore.base import (
    HealthRecordSet,
    HealthStore,
    HealthWorkout,
    IntervalRecord,
    RecordKind,
    SeriesRecord,
    StoreAvailability,
    TimeWindow,
    required_permissions,
)

logger = logging.getLogger("rowsync.healthstore.memory")


@dataclass
class _StoredRecord:
    kind: RecordKind
    record: IntervalRecord | SeriesRecord


class InMemoryHealthStore(HealthStore):
    """Dict-backed ``HealthStore``.

    Usage::

        store = InMemoryHealthStore(granted=required_permissions())
        await store.insert(record_set)
        workouts = await store.list_exercise_sessions(TimeWindow.lookback(365))
    """

    DISPLAY_NAME = "In-memory health store"

    def __init__(
        self,
        availability: StoreAvailability = StoreAvailability.AVAILABLE,
        granted: frozenset[str] | set[str] | None = None,
        fail_writes: bool = False,
    ) -> None:
        """Initialize the store.

        Args:
            availability: Reported platform availability.
            granted:      Granted permission strings; None grants everything.
            fail_writes:  When True, ``insert`` rejects every record set.
        """
        self.status = availability
        self.granted = set(required_permissions() if granted is None else granted)
        self.fail_writes = fail_writes
        self._workouts: dict[str, HealthWorkout] = {}
        self._records: list[_StoredRecord] = []

    # ------------------------------------------------------------------
    # Capability checks
    # ------------------------------------------------------------------

    async def availability(self) -> StoreAvailability:
        return self.status

    async def is_available(self) -> bool:
        return self.status is StoreAvailability.AVAILABLE

    async def has_permissions(self) -> bool:
        return required_permissions() <= self.granted

    async def _usable(self) -> bool:
        if not await self.is_available():
            logger.error("%s is not available", self.DISPLAY_NAME)
            return False
        if not await self.has_permissions():
            logger.error("Missing required %s permissions", self.DISPLAY_NAME)
            return False
        return True

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert(self, record_set: HealthRecordSet) -> bool:
        if not await self._usable():
            return False
        if self.fail_writes:
            logger.error("Write rejected for session %d", record_set.session_id)
            return False

        external_id = str(uuid.uuid4())
        exercise = record_set.exercise
        self._workouts[external_id] = HealthWorkout(
            external_id=external_id,
            title=exercise.title,
            exercise_type=exercise.exercise_type,
            start_time=exercise.start_time,
            end_time=exercise.end_time,
        )
        for record in (record_set.distance, record_set.calories, *record_set.series):
            self._records.append(_StoredRecord(record.kind, record))

        logger.info(
            "Stored session %d as %s (%d records)",
            record_set.session_id,
            external_id,
            len(record_set.kinds),
        )
        return True

    def add_workout(self, workout: HealthWorkout) -> None:
        """Seed a workout written by another app (no permission check)."""
        self._workouts[workout.external_id] = workout

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_exercise_sessions(self, window: TimeWindow) -> list[HealthWorkout]:
        if not await self._usable():
            return []
        return [
            w for w in self._workouts.values()
            if window.contains(w.start_time, w.end_time)
        ]

    def records_of(self, kind: RecordKind) -> list[IntervalRecord | SeriesRecord]:
        if kind is RecordKind.EXERCISE_SESSION:
            raise ValueError("Use list_exercise_sessions() for exercise sessions")
        return [r.record for r in self._records if r.kind is kind]

    # ------------------------------------------------------------------
    # Deletes
    # ------------------------------------------------------------------

    async def delete_exercise_session(self, external_id: str) -> bool:
        if not await self._usable():
            return False
        if self._workouts.pop(external_id, None) is None:
            logger.error("Exercise session not found: %s", external_id)
            return False
        return True

    async def delete_records_in_range(self, kind: RecordKind, window: TimeWindow) -> bool:
        if not await self._usable():
            return False
        if kind is RecordKind.EXERCISE_SESSION:
            doomed = [
                wid for wid, w in self._workouts.items()
                if window.contains(w.start_time, w.end_time)
            ]
            for wid in doomed:
                del self._workouts[wid]
            return True

        before = len(self._records)
        self._records = [
            r for r in self._records
            if not (
                r.kind is kind
                and window.contains(r.record.start_time, r.record.end_time)
            )
        ]
        logger.debug("Deleted %d %s records", before - len(self._records), kind.value)
        return True

