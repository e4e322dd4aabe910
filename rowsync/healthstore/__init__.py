"""Health data store integration.

Modules:
    base    — HealthStore ABC, record models, permissions, rowing filter
    records — Build the HealthRecordSet for a device session
    memory  — InMemoryHealthStore (fail-closed, configurable capabilities)
"""

from rowsync.healthstore.base import (
    ExerciseType,
    HealthRecordSet,
    HealthStore,
    HealthWorkout,
    RecordKind,
    StoreAvailability,
    TimeWindow,
    required_permissions,
    rowing_only,
)
from rowsync.healthstore.memory import InMemoryHealthStore
from rowsync.healthstore.records import build_record_set

__all__ = [
    "ExerciseType",
    "HealthRecordSet",
    "HealthStore",
    "HealthWorkout",
    "InMemoryHealthStore",
    "RecordKind",
    "StoreAvailability",
    "TimeWindow",
    "build_record_set",
    "required_permissions",
    "rowing_only",
]
