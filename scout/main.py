"""
Scout — Mission Pipeline API

Thin HTTP surface over the mission orchestrator. Pipeline errors map to
structured JSON bodies (schemas/errors.py):

    InvalidReviewOperation, PhaseOrderError -> 409
    MissionNotFound                         -> 404
    CollaboratorCallFailure                 -> 502
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import __version__
from .database import create_tables
from .exceptions import (
    CollaboratorCallFailure,
    InvalidReviewOperation,
    MissionNotFound,
    PhaseOrderError,
    ScoutError,
    Throttled,
)
from .http_client import close_clients
from .logging_config import setup_logging
from .routers import missions
from .schemas.errors import ErrorResponse

log = logging.getLogger("scout.app")

_STATUS = (
    (MissionNotFound, 404),
    (InvalidReviewOperation, 409),
    (PhaseOrderError, 409),
    (Throttled, 429),
    (CollaboratorCallFailure, 502),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    create_tables()
    log.info(f"Scout {__version__} ready")
    yield
    await close_clients()


app = FastAPI(title="Scout", version=__version__, lifespan=lifespan)
app.include_router(missions.router)


# ── Error handlers ───────────────────────────────────────────────────────


def _status_for(exc: ScoutError) -> int:
    for cls, status in _STATUS:
        if isinstance(exc, cls):
            return status
    return 500


@app.exception_handler(ScoutError)
async def scout_error_handler(request: Request, exc: ScoutError):
    status = _status_for(exc)
    if status >= 500:
        log.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        log.info(f"{request.method} {request.url.path} rejected ({status}): {exc}")
    body = ErrorResponse(error=str(exc), status_code=status)
    return JSONResponse(status_code=status, content=body.model_dump())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    body = ErrorResponse(
        error="Invalid request",
        status_code=422,
        detail=[{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in exc.errors()],
    )
    return JSONResponse(status_code=422, content=body.model_dump())


@app.get("/api/health")
async def health():
    return {"status": "ok", "version": __version__}
