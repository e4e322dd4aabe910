"""RowSync API — FastAPI application entry point.

Run locally:
    uvicorn rowsync.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rowsync.config import Settings, get_settings
from rowsync.healthstore.memory import InMemoryHealthStore
from rowsync.routers import health, health_workouts, sessions
from rowsync.sync.engine import SessionSyncEngine

# ---------- Logging ----------

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("rowsync")


def build_engine(settings: Settings) -> SessionSyncEngine:
    """Wire the engine to the configured monitor and an in-process store."""
    store = InMemoryHealthStore(
        granted=None if settings.health_store_permissions_granted else set()
    )
    return SessionSyncEngine.from_settings(store, settings)


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks."""
    settings = get_settings()
    logger.info(
        "Starting RowSync API v%s [%s]",
        settings.app_version,
        settings.environment,
    )
    app.state.engine = build_engine(settings)
    yield
    await app.state.engine.aclose()
    app.state.engine = None
    logger.info("RowSync API shut down")


# ---------- App factory ----------

def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="RowSync API",
        description=(
            "Sync rowing sessions from a networked rowing monitor into a "
            "health data store."
        ),
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------- Health check (outside v1 prefix — always at /health) ----------
    app.include_router(health.router)

    # ---------- API v1 routes ----------
    v1_prefix = "/api/v1"

    app.include_router(sessions.router, prefix=v1_prefix)
    app.include_router(health_workouts.router, prefix=v1_prefix)

    return app


app = create_app()
