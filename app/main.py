"""
Main FastAPI application for the Match Weather Sync API.
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy import text

from app.core.config import settings
from app.core.database import SessionLocal, init_db
from app.core.kv_store import close_kv_store, get_kv_store
from app.core.logging import configure_logging, get_logger
from app.core.middleware import CorrelationIdMiddleware
from app.core.rate_limit import GENERAL_LIMIT, HEALTH_LIMIT, limiter
from app.core.tasks import get_task_runner
from app.core import metrics
from app.api.routes import predictions, statistics, sync
from app.services.sync.lock import SyncLock

# Configure structured logging
configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan events."""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    init_db()
    logger.info("Database tables ready")

    if settings.SYNC_SCHEDULE_ENABLED:
        from app.core.scheduler import start_scheduler
        await start_scheduler()
        logger.info("Automation scheduler started")
    metrics.update_scheduler_metrics()

    logger.info("Application started")

    yield

    # Shutdown: cancelled syncs release their lock before the store closes
    logger.info("Shutting down application")
    await get_task_runner().shutdown()

    if settings.SYNC_SCHEDULE_ENABLED:
        from app.core.scheduler import stop_scheduler
        await stop_scheduler()
        logger.info("Automation scheduler stopped")

    await close_kv_store()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="La Liga and MLS match history enriched with kickoff weather, season statistics and AI predictions",
    lifespan=lifespan
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add correlation ID middleware (must be added before CORS for proper header handling)
app.add_middleware(CorrelationIdMiddleware)

# Initialize Prometheus metrics BEFORE including routes
instrumentator = Instrumentator()
instrumentator.instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API v1 - All routes use /api/v1/ prefix for versioning
app.include_router(sync.router, prefix="/api/v1")
app.include_router(statistics.router, prefix="/api/v1")
app.include_router(predictions.router, prefix="/api/v1")


@app.get("/")
@limiter.limit(GENERAL_LIMIT)
async def root(request: Request):
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "endpoints": {
            "api_version": "v1",
            "sync": {
                "status": "/api/v1/sync/sync-status",
                "upcoming_matches": "/api/v1/sync/upcoming-matches",
                "previous_matches": "/api/v1/sync/previous-matches",
            },
            "statistics": "/api/v1/statistics/year",
            "prediction": {
                "ask": "/api/v1/prediction/ask",
                "predict_match": "/api/v1/prediction/predict-match",
                "conversation": "/api/v1/prediction/conversation/{conversation_id}",
            },
            "docs": "/docs",
            "health": "/health",
            "metrics": "/metrics",
        }
    }


@app.get("/health")
@limiter.limit(HEALTH_LIMIT)
async def health_check(request: Request):
    """Health check with component-level status."""
    health_status = {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "components": {}
    }
    all_healthy = True

    # 1. Database
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        health_status["components"]["database"] = {"status": "connected"}
        metrics.update_db_pool_metrics()
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        health_status["components"]["database"] = {"status": "unhealthy", "error": str(e)}
        all_healthy = False
    finally:
        db.close()

    # 2. Key-value store (also reports whether a sync is running)
    try:
        sync_status = await SyncLock(get_kv_store()).get_status()
        health_status["components"]["kv_store"] = {
            "status": "connected",
            "backend": settings.KV_STORE_BACKEND,
            "sync_running": sync_status["is_running"],
        }
    except Exception as e:
        logger.error(f"Key-value store health check failed: {e}")
        health_status["components"]["kv_store"] = {"status": "unhealthy", "error": str(e)}
        all_healthy = False

    # 3. Scheduler (optional component, never fails the check)
    from app.core.scheduler import get_scheduler

    scheduler = get_scheduler()
    if scheduler and scheduler.running:
        jobs = scheduler.scheduler.get_jobs() if scheduler.scheduler else []
        health_status["components"]["scheduler"] = {
            "status": "running",
            "jobs": [{"id": j.id, "name": j.name} for j in jobs]
        }
    else:
        health_status["components"]["scheduler"] = {
            "status": "disabled" if not settings.SYNC_SCHEDULE_ENABLED else "stopped"
        }
    metrics.update_scheduler_metrics()

    if not all_healthy:
        health_status["status"] = "degraded"

    return JSONResponse(
        status_code=200 if all_healthy else 503,
        content=health_status
    )


# Exception handlers
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.error(f"Unhandled exception: {exc}", exc_info=(type(exc), exc, exc.__traceback__))
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "detail": str(exc)}
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
