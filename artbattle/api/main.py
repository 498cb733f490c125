"""
artbattle.api.main — FastAPI application entry point
=====================================================

Run with::

    uvicorn artbattle.api.main:app --reload --port 8000

or ``python -m artbattle`` to use the port from ``config.yaml``.
"""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

load_dotenv()

from artbattle.api.deps import get_config, get_engine  # noqa: E402
from artbattle.api.routes.admin import router as admin_router  # noqa: E402
from artbattle.api.routes.artworks import router as artworks_router  # noqa: E402
from artbattle.api.routes.events import router as events_router  # noqa: E402
from artbattle.api.routes.users import router as users_router  # noqa: E402
from artbattle.database.engine import run_db  # noqa: E402
from artbattle.engine.results import StorageError  # noqa: E402
from artbattle.services.lifecycle_service import refresh_statuses  # noqa: E402
from artbattle.services.upload_service import UPLOAD_DIR, ensure_upload_dir  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


async def status_refresh_loop(engine, interval: float) -> None:
    """Advance event statuses every *interval* seconds until cancelled."""
    while True:
        try:
            await run_db(refresh_statuses, engine)
        except Exception:
            logger.exception("Event status refresh failed; retrying in %ss", interval)
        await asyncio.sleep(interval)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — warm the DB engine, start the clock."""
    ensure_upload_dir()

    engine = get_engine()
    cfg = get_config()
    task = asyncio.create_task(status_refresh_loop(engine, cfg.status_refresh_seconds))
    logger.info("%s API started — engine ready (%s)", cfg.app_name, engine.url.database)
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    logger.info("%s API shutting down", cfg.app_name)


app = FastAPI(
    title="Art Battle API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"detail": {"reason": "storage_unavailable", "message": "Please try again"}},
    )


# Mount routers
app.include_router(events_router, prefix="/api")
app.include_router(artworks_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}


# Serve uploaded images as static assets
if UPLOAD_DIR.exists():
    app.mount(
        "/api/uploads",
        StaticFiles(directory=str(UPLOAD_DIR)),
        name="uploads",
    )
