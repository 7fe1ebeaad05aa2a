"""Async engine and sessions for the cache database."""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from animuse.logging import get_logger

logger = get_logger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


class Base(DeclarativeBase):
    pass


def get_engine() -> AsyncEngine:
    """Get or create the engine for DATABASE_URL."""
    global _engine

    if _engine is None:
        from animuse.config import config

        logger.info(f"Creating database engine for {config.database_url}")
        _engine = create_async_engine(config.database_url)

    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the session factory used by `SqlStorage`."""
    global _session_factory

    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), class_=AsyncSession, expire_on_commit=False)

    return _session_factory


async def init_models(engine: AsyncEngine | None = None) -> None:
    """Create the cache table if it is missing."""
    from animuse.storage import models  # noqa: F401  registers tables on Base

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _session_factory

    if _engine is not None:
        logger.info("Closing database engine")
        await _engine.dispose()
        _engine = None
        _session_factory = None
