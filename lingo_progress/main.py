"""FastAPI application: point awards and progress snapshots."""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog
from prometheus_fastapi_instrumentator import Instrumentator

from lingo_progress.core.config import settings
from lingo_progress.core.logging import request_context, setup_logging
from lingo_progress.core.database import close_db, get_db, init_db
from lingo_progress.core.dependencies import close_http_client
from lingo_progress.core.exceptions import GamificationError
from lingo_progress.routers import gamification, progress

setup_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Service starting",
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        content_source=settings.CONTENT_SOURCE,
        duplicate_policy=settings.DUPLICATE_AWARD_POLICY
    )
    await init_db()

    yield

    await close_http_client()
    await close_db()
    logger.info("Service stopped")


app = FastAPI(
    title=settings.APP_NAME,
    description="Point awards and progress tracking for the language-learning platform",
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url=None if settings.is_production() else "/docs",
    redoc_url=None if settings.is_production() else "/redoc",
)

if settings.CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    )

# Instrumentation has to wrap the app before it starts
if settings.ENABLE_METRICS:
    Instrumentator(excluded_handlers=["/health", "/metrics"]).instrument(app).expose(
        app, endpoint="/metrics", include_in_schema=False
    )


@app.middleware("http")
async def bind_request_context(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID")
    with request_context(request.method, request.url.path, request_id):
        response = await call_next(request)
    if request_id:
        response.headers["X-Request-ID"] = request_id
    return response


app.include_router(progress.router, prefix="/api/progress", tags=["progress"])
app.include_router(gamification.router, prefix="/api/gamification", tags=["gamification"])


@app.exception_handler(GamificationError)
async def gamification_error_handler(request: Request, exc: GamificationError):
    """Report every engine error with its category."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log("Request failed", error=exc.code, detail=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.message}
    )


@app.get("/health", tags=["health"])
async def health_check(db: AsyncSession = Depends(get_db)):
    """Liveness plus a round trip to the database."""
    try:
        await db.execute(text("SELECT 1"))
        database = "healthy"
    except SQLAlchemyError as e:
        logger.error("Health check failed", error=str(e))
        database = "unhealthy"

    healthy = database == "healthy"
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "degraded",
            "service": settings.SERVICE_NAME,
            "version": settings.APP_VERSION,
            "checks": {"database": database},
        }
    )


@app.get("/config", tags=["debug"])
async def get_config():
    """Effective gamification policy. Hidden in production."""
    if settings.is_production():
        return JSONResponse(status_code=403, content={"error": "Forbidden", "detail": "Not available in production"})

    return {
        "environment": settings.ENVIRONMENT,
        "contentSource": settings.CONTENT_SOURCE,
        "points": settings.points_policy(),
        "bonuses": {
            "perfectScore": settings.POINTS_PERFECT_SCORE_BONUS,
            "time": settings.POINTS_TIME_BONUS,
        },
        "duplicateAwardPolicy": settings.DUPLICATE_AWARD_POLICY,
        "improvementBonusRatio": settings.IMPROVEMENT_BONUS_RATIO,
        "levelBasePoints": settings.LEVEL_BASE_POINTS,
        "activeWindowDays": settings.ACTIVE_WINDOW_DAYS,
        "ledgerBatchSize": settings.LEDGER_BATCH_SIZE,
    }


def run():
    import uvicorn

    # structlog owns the log output
    uvicorn.run(
        "lingo_progress.main:app",
        host="0.0.0.0",
        port=settings.SERVICE_PORT,
        reload=settings.ENVIRONMENT == "development",
        log_config=None
    )


if __name__ == "__main__":
    run()
