"""
Lab Server Booking API - Main Application Entry Point

Users reserve physical lab servers for date ranges; admins manage the
inventory, accounts and the weekly email digest.
- Conflict-free reservations via per-server optimistic locking
- Server availability derived from bookings on every read
- Redis caching of the server listing with invalidation on writes
- Structured logging with request correlation
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from labbook.core.config import get_settings
from labbook.core.exceptions import AppError
from labbook.core.logging import setup_logging, get_logger
from labbook.core.metrics import metrics_endpoint
from labbook.api.router import api_router
from labbook.api.middleware import RequestLoggingMiddleware
from labbook.db.session import engine
from labbook.services.cache_service import get_redis, close_redis, get_cache_stats

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        email_configured=settings.email_configured,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    yield

    await close_redis()
    await engine.dispose()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Lab server reservation API with conflict-free bookings",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    logger.warning("request_rejected", status_code=exc.status_code, code=exc.code, message=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception):
    logger.exception("internal_error", error=str(exc))
    return JSONResponse(
        status_code=500,
        content={"status": "error", "code": "InternalError", "message": "Internal server error"},
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness probe."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
    }


@app.get("/ready", tags=["Health"])
async def readiness_check():
    """Readiness probe: the database must answer."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("readiness_failed", error=str(e))
        return JSONResponse(status_code=503, content={"status": "not ready", "database": "disconnected"})
    return {"status": "ready", "database": "connected"}


@app.get("/metrics", tags=["Health"])
def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
