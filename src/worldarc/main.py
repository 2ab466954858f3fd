"""Worldarc: world-scale story arcs generated and persisted beat by beat.

Run with:  uvicorn worldarc.main:app --reload
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from worldarc.config import settings

# Configure logging for all worldarc modules
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from worldarc.api.beats import router as beats_router
from worldarc.api.providers import router as providers_router
from worldarc.api.worlds import router as worlds_router
from worldarc.db.database import init_db
from worldarc.errors import (
    ArcStateError,
    ConflictError,
    GenerationError,
    NotFoundError,
    WorldArcError,
)

log = logging.getLogger(__name__)

_STATUS_BY_ERROR = [
    (NotFoundError, 404),
    (ConflictError, 409),
    (ArcStateError, 409),
    (GenerationError, 502),
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    await init_db()
    yield


app = FastAPI(
    title="Worldarc",
    description=(
        "Fifteen-beat story arcs for persistent worlds: anchors first, "
        "dynamic beats on demand, summaries carried into the next era."
    ),
    version="0.1.0",
    lifespan=lifespan,
)


def status_for(exc: WorldArcError) -> int:
    for error_cls, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            return status
    return 500


@app.exception_handler(WorldArcError)
async def world_arc_error_handler(request: Request, exc: WorldArcError):
    status = status_for(exc)
    if status >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status,
        content={"detail": exc.message, "error": type(exc).__name__},
    )


# ── API routers ──────────────────────────────────────────────────────────
app.include_router(worlds_router)
app.include_router(beats_router)
app.include_router(providers_router)
