"""Database session management."""

from collections.abc import AsyncGenerator
from typing import Annotated, Any

from fastapi import Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from projecthub.config import Settings, get_settings
from projecthub.db.base import Base

settings = get_settings()


def build_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine for the configured database."""
    options: dict[str, Any] = {"echo": settings.debug}
    if not settings.database_url.startswith("sqlite"):
        # SQLite uses a single-connection pool, the sizing knobs do not apply
        options.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_timeout=settings.database_pool_timeout,
            pool_pre_ping=True,
        )
    return create_async_engine(settings.database_url, **options)


# Create async engine
engine = build_engine(settings)

# Create session factory
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def init_db() -> None:
    """Verify connectivity and create any missing tables."""
    import projecthub.models  # noqa: F401  (registers tables on Base.metadata)

    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connection pool."""
    await engine.dispose()


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session for dependency injection."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# Type alias for dependency injection
DBSession = Annotated[AsyncSession, Depends(get_db_session)]


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for long-lived handlers that open a session per unit of work."""
    return async_session_factory
