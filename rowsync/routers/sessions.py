"""Command endpoints for device sessions: refresh, sync, delete, state."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Response

from rowsync.dependencies import Engine
from rowsync.models.device import DeviceStatus
from rowsync.models.sync import (
    BulkResultRead,
    DeviceAddressRead,
    DeviceAddressUpdate,
    OutcomeRead,
    StateRead,
)
from rowsync.sync.outcome import ErrorKind, Outcome

router = APIRouter(tags=["sessions"])

_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.BUSY: 409,
    ErrorKind.DELETE_BLOCKED: 409,
    ErrorKind.ALREADY_SYNCED: 409,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.AVAILABILITY: 503,
    ErrorKind.PERMISSION: 503,
    ErrorKind.NETWORK: 502,
    ErrorKind.PROTOCOL: 502,
    ErrorKind.STORE_WRITE: 500,
}


def outcome_status_code(outcome: Outcome) -> int:
    if outcome.ok:
        return 200
    return _STATUS_BY_KIND.get(outcome.error_kind, 500)


def outcome_response(outcome: Outcome, response: Response) -> OutcomeRead:
    response.status_code = outcome_status_code(outcome)
    return OutcomeRead.model_validate(outcome)


# ---------- State ----------

@router.get("/state", response_model=StateRead)
async def get_state(engine: Engine) -> Any:
    return StateRead.model_validate(engine.state)


@router.delete("/state/error", status_code=204)
async def clear_error(engine: Engine) -> None:
    engine.clear_error()


# ---------- Device ----------

@router.put("/device/address", response_model=DeviceAddressRead)
async def set_device_address(engine: Engine, body: DeviceAddressUpdate) -> Any:
    try:
        base_url = await engine.set_device_address(body.address)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"device_address": base_url}


@router.get("/device/status", response_model=DeviceStatus)
async def get_device_status(engine: Engine) -> Any:
    status = await engine.check_device_status()
    if status is None:
        raise HTTPException(status_code=502, detail=engine.state.error)
    return status


# ---------- Sessions ----------

@router.post("/sessions/refresh", response_model=StateRead)
async def refresh_sessions(engine: Engine) -> Any:
    if not await engine.refresh_sessions():
        raise HTTPException(status_code=502, detail=engine.state.error)
    return StateRead.model_validate(engine.state)


@router.post("/sessions/sync", response_model=BulkResultRead)
async def sync_all_sessions(engine: Engine) -> Any:
    return BulkResultRead.model_validate(await engine.sync_all())


@router.post("/sessions/{session_id}/sync", response_model=OutcomeRead)
async def sync_session(session_id: int, engine: Engine, response: Response) -> Any:
    return outcome_response(await engine.sync_one(session_id), response)


# Must precede /sessions/{session_id}
@router.delete("/sessions/synced", response_model=BulkResultRead)
async def delete_synced_sessions(engine: Engine) -> Any:
    return BulkResultRead.model_validate(await engine.delete_all_synced_remote())


@router.delete("/sessions/{session_id}", response_model=OutcomeRead)
async def delete_session(session_id: int, engine: Engine, response: Response) -> Any:
    return outcome_response(await engine.delete_remote_session(session_id), response)
