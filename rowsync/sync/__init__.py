"""Session synchronization between the rowing monitor and the health store.

Modules:
    engine  — SessionSyncEngine (sync one/all, device deletes, health-store workouts)
    outcome — Outcome / BulkResult tagged results and ErrorKind taxonomy
    state   — SyncState and the observable StateProjection
"""

from rowsync.sync.engine import SessionSyncEngine
from rowsync.sync.outcome import BulkResult, ErrorKind, Outcome, OutcomeStatus
from rowsync.sync.state import StateProjection, SyncState

__all__ = [
    "BulkResult",
    "ErrorKind",
    "Outcome",
    "OutcomeStatus",
    "SessionSyncEngine",
    "StateProjection",
    "SyncState",
]
