"""
Investor Portal API — application entry-point.

Builds the FastAPI application: middleware, exception handlers, routers,
and the lifespan that creates tables on startup.

Run locally without PostgreSQL::

    USE_SQLITE=true uvicorn investor_portal.main:app --reload
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from sqlalchemy import text
from sqlmodel import SQLModel

from investor_portal.api.api import api_router
from investor_portal.core.cache import cache
from investor_portal.core.config import settings
from investor_portal.core.exceptions import add_exception_handlers
from investor_portal.core.logging import setup_logging
from investor_portal.core.resilience import db_circuit_breaker
from investor_portal.db.session import AsyncSessionLocal, engine
from investor_portal.middleware import RequestIDMiddleware, RequestTimingMiddleware

setup_logging()
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup: register table models and create tables, retrying with
    exponential back-off.  If the database stays unreachable the app starts
    in degraded mode (``/health`` reports ``database: false``).

    Shutdown: dispose of the connection pool.
    """
    import investor_portal.db.base  # noqa: F401  (populates SQLModel.metadata)

    max_retries = 5
    retry_delay = 2  # seconds, doubled per attempt

    for attempt in range(1, max_retries + 1):
        try:
            logger.info("Connecting to database (attempt %d/%d)…", attempt, max_retries)
            async with engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
            logger.info("Database tables ready")
            break
        except Exception as exc:
            if attempt < max_retries:
                logger.warning(
                    "Database connection failed (attempt %d/%d): %s — retrying in %ds…",
                    attempt,
                    max_retries,
                    exc,
                    retry_delay,
                )
                await asyncio.sleep(retry_delay)
                retry_delay *= 2
            else:
                logger.error(
                    "Could not connect to database after %d attempts; starting in "
                    "DEGRADED mode. Last error: %s",
                    max_retries,
                    exc,
                )

    yield

    logger.info("Shutting down — disposing connection pool")
    await engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=VERSION,
    description=(
        "Investor relations API: investment requests with coin allocation, "
        "administrator review, and the coin-rate settings they depend on."
    ),
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
    lifespan=lifespan,
)

# ── Middleware (last added = outermost) ──
app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(RequestTimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

add_exception_handlers(app)

app.include_router(api_router, prefix=settings.API_PREFIX)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Liveness / readiness check.

    Runs ``SELECT 1`` so a pod that lost its database is reported as
    ``degraded``; also reports circuit-breaker state and cache statistics.
    """
    db_healthy = True
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception:
        logger.warning("Health check: database unreachable", exc_info=True)
        db_healthy = False

    return {
        "status": "ok" if db_healthy else "degraded",
        "version": VERSION,
        "database": db_healthy,
        "circuit_breaker": db_circuit_breaker.get_status(),
        "cache": cache.get_stats(),
    }
