"""
Code Snippet Share - FastAPI Backend
Main application entry point with health check and API routing.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from config import settings, validate_security_settings
from database import engine, Base
from errors import AppError, register_error_handlers
import models  # noqa: F401
from routers import (
    health,
    auth,
    snippets,
    share,
    comments,
    messages,
    notifications,
    users,
    versions,
    tags,
    clipboard,
)
from routers import settings as settings_router
from services.cache import TTLCache
from services.maintenance import run_share_maintenance

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


async def _run_maintenance_tick() -> None:
    try:
        result = await run_share_maintenance()
    except (SQLAlchemyError, OSError, AppError):
        logger.exception("Share maintenance tick failed")
        return
    if any(result.values()):
        logger.info(
            "Share maintenance tick: access_logs=%s clipboard_history=%s",
            result["access_logs"],
            result["clipboard_history"],
        )


async def _periodic_share_maintenance(interval_seconds: float) -> None:
    """Run retention housekeeping forever; a failed tick never ends the loop."""
    while True:
        await asyncio.sleep(interval_seconds)
        await _run_maintenance_tick()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    logger.info("Starting Code Snippet Share API...")
    validate_security_settings()
    if settings.AUTO_CREATE_DB_SCHEMA:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database schema verified.")
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("Database bootstrap skipped: %s", exc)
    maintenance_task = None
    if int(settings.MAINTENANCE_INTERVAL_MINUTES) > 0:
        maintenance_task = asyncio.create_task(
            _periodic_share_maintenance(int(settings.MAINTENANCE_INTERVAL_MINUTES) * 60)
        )
        logger.info(
            "Share maintenance loop enabled (every %s min).",
            int(settings.MAINTENANCE_INTERVAL_MINUTES),
        )
    yield
    # Shutdown
    if maintenance_task is not None:
        maintenance_task.cancel()
        try:
            await maintenance_task
        except asyncio.CancelledError:
            pass
    logger.info("Shutting down API...")


app = FastAPI(
    title="Code Snippet Share API",
    description="Create, share and discuss code snippets",
    version="0.1.0",
    lifespan=lifespan,
)

# List caches live for the process; tests reach them through app.state.
app.state.comment_cache = TTLCache(settings.LIST_CACHE_TTL_SECONDS)
app.state.message_cache = TTLCache(settings.LIST_CACHE_TTL_SECONDS)

register_error_handlers(app)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(snippets.router, prefix="/api/snippets", tags=["Snippets"])
app.include_router(share.router, prefix="/api/share", tags=["Share"])
app.include_router(comments.router, prefix="/api/comments", tags=["Comments"])
app.include_router(messages.router, prefix="/api/messages", tags=["Messages"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])
app.include_router(settings_router.router, prefix="/api/settings", tags=["Settings"])
app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(versions.router, prefix="/api/versions", tags=["Versions"])
app.include_router(tags.router, prefix="/api/tags", tags=["Tags"])
app.include_router(clipboard.router, prefix="/api/clipboard", tags=["Clipboard"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Code Snippet Share API",
        "version": "0.1.0",
        "status": "running"
    }
