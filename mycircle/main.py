"""Application entry point for the FastAPI adapter."""
from __future__ import annotations

import asyncio
import logging
import os
from typing import Iterable

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .errors import CircleError
from .routers import (
    conversations_router,
    friends_router,
    groups_router,
    identities_router,
    messages_router,
    presence_router,
)
from .services import ReconcileError, run_reconciliation
from .store import get_store

logger = logging.getLogger(__name__)

settings = get_settings()
APP_NAME = settings.app_name
API_VERSION = settings.api_version
DISABLE_RECONCILE = settings.disable_reconcile or os.getenv("PYTEST_CURRENT_TEST") is not None

app = FastAPI(title=APP_NAME, version=API_VERSION)

cors_origins = os.getenv("CORS_ORIGINS")
if cors_origins:
    origins: Iterable[str] = [origin.strip() for origin in cors_origins.split(",") if origin.strip()]
else:
    origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(identities_router)
app.include_router(friends_router)
app.include_router(groups_router)
app.include_router(messages_router)
app.include_router(presence_router)
app.include_router(conversations_router)

_reconcile_task: asyncio.Task[None] | None = None
_reconcile_stop = asyncio.Event()


@app.exception_handler(CircleError)
async def _circle_error_handler(_request: Request, exc: CircleError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


async def _run_reconciliation_once() -> None:
    """Execute a single reconciliation pass in a worker thread."""

    try:
        await asyncio.to_thread(run_reconciliation, get_store)
    except ReconcileError:
        logger.exception("Scheduled friend edge reconciliation failed")
    except Exception:  # pragma: no cover
        logger.exception("Unexpected error during reconciliation run")


async def _reconcile_loop() -> None:
    """Background task that reconciles the friend graph on a fixed interval."""

    while not _reconcile_stop.is_set():
        await _run_reconciliation_once()
        try:
            await asyncio.wait_for(_reconcile_stop.wait(), timeout=settings.reconcile_interval_seconds)
        except asyncio.TimeoutError:
            continue


@app.on_event("startup")
async def _startup() -> None:
    """Open the document store and start background tasks before serving."""

    try:
        get_store()
    except Exception:  # pragma: no cover
        logger.exception("Document store initialisation failed")
        raise

    if DISABLE_RECONCILE:
        logger.info("Background reconciliation disabled")
        return

    global _reconcile_task
    if _reconcile_task is None or _reconcile_task.done():
        _reconcile_stop.clear()
        _reconcile_task = asyncio.create_task(_reconcile_loop())


@app.on_event("shutdown")
async def _shutdown() -> None:
    """Stop background tasks cleanly during application shutdown."""

    if DISABLE_RECONCILE:
        return

    _reconcile_stop.set()
    if _reconcile_task is not None:
        try:
            await _reconcile_task
        except asyncio.CancelledError:  # pragma: no cover
            pass


@app.get("/api", tags=["system"])
def api_info() -> dict[str, str]:
    return {"service": APP_NAME, "version": API_VERSION}


@app.get("/health", tags=["system"])
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}
