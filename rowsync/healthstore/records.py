"""Build the health-store record set for one rowing session.

Pure functions only: no I/O, no store access.
"""

from __future__ import annotations

from datetime import datetime, timedelta, tzinfo

from rowsync.healthstore.base import (
    ExerciseSessionRecord,
    ExerciseType,
    HealthRecordSet,
    IntervalRecord,
    RecordKind,
    Sample,
    SeriesRecord,
)
from rowsync.models.device import SessionDetail, epoch_ms_to_datetime

DEFAULT_TITLE = "Rowing Session"


def zone_offset(instant: datetime, tz: tzinfo | None = None) -> timedelta | None:
    """Return the UTC offset in effect at ``instant`` in ``tz`` (system zone if None)."""
    local = instant.astimezone(tz) if tz else instant.astimezone()
    return local.utcoffset()


def build_record_set(
    detail: SessionDetail,
    title: str = DEFAULT_TITLE,
    tz: tzinfo | None = None,
) -> HealthRecordSet:
    """Convert a device session into the records written to the health store.

    The exercise, distance and calories records share the session window.
    Heart-rate, power and speed series are included only when the device
    recorded at least one sample of that kind.

    Args:
        detail: Session detail fetched from the monitor.
        title:  Title for the exercise-session record.
        tz:     Zone used for start/end offsets; defaults to the system zone.
    """
    start = detail.started_at
    end = detail.ended_at

    exercise = ExerciseSessionRecord(
        start_time=start,
        end_time=end,
        start_zone_offset=zone_offset(start, tz),
        end_zone_offset=zone_offset(end, tz),
        exercise_type=ExerciseType.ROWING_MACHINE,
        title=title,
    )

    series_sources = (
        (RecordKind.HEART_RATE, [(s.time, float(s.bpm)) for s in detail.heart_rate_samples]),
        (RecordKind.POWER, [(s.time, s.watts) for s in detail.power_samples]),
        (RecordKind.SPEED, [(s.time, s.meters_per_second) for s in detail.speed_samples]),
    )
    series = tuple(
        SeriesRecord(
            kind=kind,
            start_time=start,
            end_time=end,
            samples=tuple(Sample(epoch_ms_to_datetime(t), v) for t, v in points),
        )
        for kind, points in series_sources
        if points
    )

    return HealthRecordSet(
        session_id=detail.id,
        exercise=exercise,
        distance=IntervalRecord(RecordKind.DISTANCE, start, end, float(detail.distance)),
        calories=IntervalRecord(RecordKind.TOTAL_CALORIES, start, end, float(detail.calories)),
        series=series,
    )
