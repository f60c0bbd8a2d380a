"""Database configuration and session management."""

import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from recognition_engine.core.config import settings

logger = logging.getLogger(__name__)


def create_engine(url: str, **kwargs) -> AsyncEngine:
    """Create an async engine; SQLite waits on locks instead of failing fast."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"timeout": 30})
    return create_async_engine(url, echo=settings.DEBUG, future=True, **kwargs)


def create_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to an engine."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# Create async engine
engine = create_engine(settings.DATABASE_URL)

# Session factory
async_session_maker = create_session_maker(engine)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""
    pass


async def init_db(bind: AsyncEngine = None) -> None:
    """Initialize the database, creating tables if needed."""
    from recognition_engine.models import job  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables created/verified")


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
    logger.info("Database connections closed")

