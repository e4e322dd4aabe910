"""Shared FastAPI dependencies injected into route handlers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from rowsync.sync.engine import SessionSyncEngine


async def get_engine(request: Request) -> SessionSyncEngine:
    """Return the engine created by the app lifespan."""
    engine: SessionSyncEngine | None = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Sync engine not initialized")
    return engine


# Annotated shortcut for route signatures
Engine = Annotated[SessionSyncEngine, Depends(get_engine)]
