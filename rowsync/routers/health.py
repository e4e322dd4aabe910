"""Health check endpoint — public, no auth required."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from rowsync.config import get_settings

router = APIRouter(tags=["system"])


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Liveness probe. Returns 200 if the API process is up.

    Reports the configured monitor and whether the last contact succeeded;
    it does not call the monitor itself.
    """
    settings = get_settings()
    engine = getattr(request.app.state, "engine", None)
    state = engine.state if engine is not None else None

    return {
        "status": "healthy" if engine is not None else "starting",
        "version": settings.app_version,
        "environment": settings.environment,
        "device_address": state.device_address if state else None,
        "device": "connected" if state and state.is_connected else "unknown",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
