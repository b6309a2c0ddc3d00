"""
AI Council API — FastAPI application.

Exposes auth, agent catalog, councils, memories, admin usage and the
realtime council WebSocket.

Usage:
    uvicorn aicouncil.main:app --host 0.0.0.0 --port 8000
"""

import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from aicouncil.config import settings
from aicouncil.db import init_db, async_session_maker
from aicouncil.api import (
    auth_router,
    agents_router,
    councils_router,
    memories_router,
    admin_router,
    ws_council_router,
    RoomManager,
)
from aicouncil.services.agent_catalog import get_agent_catalog
from aicouncil.services.errors import CouncilAppError, RateLimitExceededError
from aicouncil.services.usage_tracker import UsageTracker

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("aicouncil")

_app_start_time = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _app_start_time
    _app_start_time = time.time()

    # ── Startup ───────────────────────────────────────────────
    logger.info("AI Council API starting up...")
    await init_db()
    logger.info("Database initialized")

    if not settings.openai_api_key or settings.openai_api_key == settings.openai_placeholder_key:
        logger.warning("OPENAI_API_KEY is not configured; chat, tests and recommendations will fail")

    if settings.enable_scheduler:
        from aicouncil.scripts.scheduled_tasks import start_scheduler
        start_scheduler(app.state.usage_tracker)

    logger.info(f"AI Council API ready ({len(get_agent_catalog())} agents loaded)")
    yield

    # ── Shutdown ──────────────────────────────────────────────
    if settings.enable_scheduler:
        from aicouncil.scripts.scheduled_tasks import stop_scheduler
        stop_scheduler()
    logger.info("AI Council API shutdown complete")


app = FastAPI(
    title=settings.app_name,
    description="Four-agent AI councils with per-user memory and usage tracking",
    version=settings.version,
    lifespan=lifespan,
)

# Process-local shared state
app.state.usage_tracker = UsageTracker(tier_limits=settings.tier_rate_limits)
app.state.room_manager = RoomManager()
app.state.emission_pacing_seconds = settings.emission_pacing_seconds

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Error envelope ───────────────────────────────────────────────────

@app.exception_handler(CouncilAppError)
async def council_app_error_handler(request: Request, exc: CouncilAppError):
    body = {"success": False, "error": exc.message}
    if isinstance(exc, RateLimitExceededError):
        body["data"] = {"requestsThisHour": exc.requests_this_hour, "limit": exc.limit}
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        detail = str(first.get("msg", "")).removeprefix("Value error, ")
        message = f"{field}: {detail}" if field else detail
    return JSONResponse(status_code=400, content={"success": False, "error": message})


# ── Routers ──────────────────────────────────────────────────────────
app.include_router(auth_router, prefix=settings.api_prefix)
app.include_router(agents_router, prefix=settings.api_prefix)
app.include_router(councils_router, prefix=settings.api_prefix)
app.include_router(memories_router, prefix=settings.api_prefix)
app.include_router(admin_router, prefix=settings.api_prefix)
app.include_router(ws_council_router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "status": "healthy",
        "version": settings.version,
    }


@app.get("/health")
async def health():
    db_status = "connected"
    try:
        async with async_session_maker() as db:
            await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check database error: {e}")
        db_status = "error"

    uptime = time.time() - _app_start_time if _app_start_time else 0

    return {
        "status": "healthy" if db_status == "connected" else "degraded",
        "version": settings.version,
        "uptime_seconds": round(uptime, 1),
        "database": db_status,
        "agents": len(get_agent_catalog()),
    }


if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run("aicouncil.main:app", host="0.0.0.0", port=port, reload=settings.debug)
