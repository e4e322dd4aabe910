"""Endpoints for rowing workouts stored in the health store."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Response

from rowsync.dependencies import Engine
from rowsync.models.sync import BulkResultRead, HealthWorkoutRead, OutcomeRead
from rowsync.routers.sessions import outcome_response

router = APIRouter(tags=["health-store"])


@router.post("/health-store/permissions", response_model=OutcomeRead)
async def check_permissions(engine: Engine, response: Response) -> Any:
    return outcome_response(await engine.check_health_permissions(), response)


@router.get("/health-workouts", response_model=list[HealthWorkoutRead])
async def list_health_workouts(engine: Engine) -> Any:
    workouts = await engine.load_health_workouts()
    return [HealthWorkoutRead.model_validate(w) for w in workouts]


@router.delete("/health-workouts", response_model=BulkResultRead)
async def delete_all_health_workouts(engine: Engine) -> Any:
    return BulkResultRead.model_validate(await engine.delete_all_health_workouts())


@router.delete("/health-workouts/{external_id}", response_model=OutcomeRead)
async def delete_health_workout(external_id: str, engine: Engine, response: Response) -> Any:
    return outcome_response(await engine.delete_health_workout(external_id), response)
