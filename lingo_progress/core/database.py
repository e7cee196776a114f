"""Async database engine and session handling."""

from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
import structlog

from lingo_progress.core.config import settings

logger = structlog.get_logger()

Base = declarative_base()

# Global instances
_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def get_engine() -> AsyncEngine:
    """Get the process-wide async engine."""
    global _engine

    if _engine is None:
        options = {"echo": settings.DATABASE_ECHO, "pool_pre_ping": True}
        if not settings.DATABASE_URL.startswith("sqlite"):
            options["pool_size"] = settings.DATABASE_POOL_SIZE
            options["max_overflow"] = settings.DATABASE_MAX_OVERFLOW
        _engine = create_async_engine(settings.DATABASE_URL, **options)

    return _engine


def get_session_factory() -> async_sessionmaker:
    """Get the session factory bound to the global engine."""
    global _session_factory

    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)

    return _session_factory


async def get_db() -> AsyncIterator[AsyncSession]:
    """Yield one session per request."""
    async with get_session_factory()() as session:
        yield session


async def init_db():
    """Create the tables owned by this service.

    Content and user tables belong to other services and are only mapped here,
    so they are left alone.
    """
    # Register the models on Base.metadata
    from lingo_progress.models.gamification import ActivityLog, PointAward

    async with get_engine().begin() as conn:
        await conn.run_sync(
            Base.metadata.create_all,
            tables=[PointAward.__table__, ActivityLog.__table__],
        )
    logger.info("Database initialized")


async def close_db():
    """Dispose of the engine's connection pool."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
