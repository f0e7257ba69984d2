"""Database engine and session management.

The engine is built from settings during application startup rather than at
import time, so tests and workers can each run against their own database.
"""

from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from sitedoc.config.settings import Settings
from sitedoc.db.models.base import Base

SessionFactory = async_sessionmaker[AsyncSession]


def create_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine for the configured database.

    SQLite does not accept pool sizing arguments, so they are only passed
    for server databases.
    """
    if settings.is_sqlite:
        return create_async_engine(settings.DATABASE_URL, echo=settings.DEBUG)

    return create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DEBUG,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_pre_ping=True,
        **({"poolclass": NullPool} if settings.ENVIRONMENT == "test" else {}),
    )


def create_session_factory(engine: AsyncEngine) -> SessionFactory:
    """Session factory used by request handlers and report workers."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine, *, create_schema: bool = False) -> None:
    """Verify connectivity during application startup.

    Args:
        engine: The engine to check
        create_schema: Create missing tables (local SQLite development only;
            other deployments run the Alembic migrations)
    """
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
        if create_schema:
            await conn.run_sync(Base.metadata.create_all)


async def close_db(engine: AsyncEngine) -> None:
    """Close database connections gracefully during shutdown."""
    await engine.dispose()


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a session from the application's factory."""
    session_factory: SessionFactory = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
