"""Tagged results of sync engine commands.

Soft and hard failures are values, not exceptions: a command always returns
an ``Outcome`` whose status is SUCCESS, WARNING (succeeded, but something
non-fatal went wrong) or FAILURE.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from rowsync.device.errors import DeviceError, NetworkError


class OutcomeStatus(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    FAILURE = "failure"


class ErrorKind(str, Enum):
    NETWORK = "network"                # monitor unreachable / timed out
    PROTOCOL = "protocol"              # malformed or rejected monitor response
    AVAILABILITY = "availability"      # health platform missing or outdated
    PERMISSION = "permission"          # health permissions not granted
    STORE_WRITE = "store_write"        # store write/delete failed after checks passed
    PARTIAL_SYNC = "partial_sync"      # stored, but monitor mark-synced failed
    DELETE_BLOCKED = "delete_blocked"  # delete of a session never synced
    ALREADY_SYNCED = "already_synced"  # sync of a session the monitor flags synced
    BUSY = "busy"                      # same command already in flight for this id
    NOT_FOUND = "not_found"            # no rowing workout with that store id


def classify_device_error(exc: DeviceError) -> ErrorKind:
    return ErrorKind.NETWORK if isinstance(exc, NetworkError) else ErrorKind.PROTOCOL


@dataclass(frozen=True)
class Outcome:
    """Result of one per-item command.

    Attributes:
        target:     Device session id (int) or health-store workout id (str).
        status:     SUCCESS, WARNING or FAILURE.
        error_kind: Set for WARNING and FAILURE.
        message:    Human-readable explanation for WARNING and FAILURE.
    """

    target: int | str | None
    status: OutcomeStatus
    error_kind: ErrorKind | None = None
    message: str | None = None

    @classmethod
    def success(cls, target: int | str | None) -> "Outcome":
        return cls(target, OutcomeStatus.SUCCESS)

    @classmethod
    def warning(cls, target: int | str | None, kind: ErrorKind, message: str) -> "Outcome":
        return cls(target, OutcomeStatus.WARNING, kind, message)

    @classmethod
    def failure(cls, target: int | str | None, kind: ErrorKind, message: str) -> "Outcome":
        return cls(target, OutcomeStatus.FAILURE, kind, message)

    @property
    def ok(self) -> bool:
        """True unless the command hard-failed."""
        return self.status is not OutcomeStatus.FAILURE


@dataclass
class BulkResult:
    """Aggregate of a bulk pass over a snapshot.

    Attributes:
        outcomes: Per-item outcomes in snapshot order.
        message:  Aggregate report, e.g. "3 deleted, 1 failed"; None when
                  nothing needs reporting.
    """

    outcomes: list[Outcome] = field(default_factory=list)
    message: str | None = None

    def add(self, outcome: Outcome) -> None:
        self.outcomes.append(outcome)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)

    @property
    def warnings(self) -> int:
        return sum(1 for o in self.outcomes if o.status is OutcomeStatus.WARNING)
