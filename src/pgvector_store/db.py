import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from loguru import logger
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_scoped_session,
    async_sessionmaker,
    create_async_engine,
)

from pgvector_store.config import PgVectorStoreConfig, get_config

# Module level state
_engine: Optional[AsyncEngine] = None
_session_maker: Optional[async_sessionmaker[AsyncSession]] = None


def get_scoped_session_factory(
    session_maker: async_sessionmaker[AsyncSession],
) -> async_scoped_session:
    """Create a scoped session factory scoped to current task."""
    return async_scoped_session(session_maker, scopefunc=asyncio.current_task)


@asynccontextmanager
async def scoped_session(
    session_maker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """
    Get a scoped session with proper lifecycle management.

    Commits when the block exits normally. Any exception rolls the session back
    and is re-raised unchanged.

    Args:
        session_maker: Session maker to create scoped sessions from
    """
    factory = get_scoped_session_factory(session_maker)
    session = factory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()
        await factory.remove()


def create_engine_and_session(
    database_url: str,
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Create an engine and session maker for a database URL."""
    logger.debug(f"Creating engine for db_url: {database_url}")
    engine = create_async_engine(database_url, pool_pre_ping=True)
    session_maker = async_sessionmaker(engine, expire_on_commit=False)
    return engine, session_maker


def get_or_create_db(
    config: Optional[PgVectorStoreConfig] = None,
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Get or create the process-wide engine and session maker."""
    global _engine, _session_maker

    if _engine is None or _session_maker is None:
        app_config = config or get_config()
        _engine, _session_maker = create_engine_and_session(app_config.database_url)

    return _engine, _session_maker


async def shutdown_db() -> None:
    """Dispose the process-wide engine."""
    global _engine, _session_maker

    if _engine is not None:
        await _engine.dispose()
        logger.debug("Disposed database engine")

    _engine = None
    _session_maker = None


@asynccontextmanager
async def engine_session_factory(
    database_url: str,
) -> AsyncGenerator[tuple[AsyncEngine, async_sessionmaker[AsyncSession]], None]:
    """Create a dedicated engine and session factory, disposed on exit.

    Primarily used by tests and the CLI where each run wants its own engine.
    """
    engine, session_maker = create_engine_and_session(database_url)
    try:
        yield engine, session_maker
    finally:
        await engine.dispose()
        logger.debug("Disposed database engine")
