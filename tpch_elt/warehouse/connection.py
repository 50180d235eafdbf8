"""
Source Database Connection Management

Async SQLAlchemy engine for the database that holds the raw TPC-H tables.
Connectivity failures are wrapped in WarehouseConnectionError and left to
the orchestrator, which owns the retry policy.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from tpch_elt.config import get_settings
from tpch_elt.exceptions import WarehouseConnectionError

logger = structlog.get_logger(__name__)

# Global engine and session factory
_engine: Optional[AsyncEngine] = None
_async_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


async def init_database(url: Optional[str] = None) -> AsyncEngine:
    """
    Initialize the source database engine.

    Args:
        url: SQLAlchemy async URL; defaults to the configured source database

    Returns:
        AsyncEngine: The initialized database engine

    Raises:
        WarehouseConnectionError: If the database does not answer a ping
    """
    global _engine, _async_session_factory

    if _engine is not None:
        logger.warning("Database already initialized")
        return _engine

    db_settings = get_settings().source_database

    _engine = create_async_engine(
        url or db_settings.async_url,
        echo=db_settings.echo,
        pool_pre_ping=True,
        poolclass=NullPool,
    )

    _async_session_factory = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    try:
        async with _engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Source database connection established", url=_engine.url.render_as_string(hide_password=True))
    except (SQLAlchemyError, OSError) as e:
        logger.error("Failed to connect to source database", error=str(e))
        await close_database()
        raise WarehouseConnectionError(f"Cannot reach source database: {e}") from e

    return _engine


async def close_database() -> None:
    """Dispose of the engine and forget the session factory."""
    global _engine, _async_session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_factory = None
        logger.info("Source database connection closed")


@asynccontextmanager
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Get a database session.

    Yields:
        AsyncSession: Database session, rolled back on error

    Example:
        async with get_db() as db:
            result = await db.execute(query)
    """
    if _async_session_factory is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")

    session = _async_session_factory()
    try:
        yield session
        await session.commit()
    except Exception as e:
        logger.error("Database session error, rolling back", error=str(e), error_type=type(e).__name__)
        await session.rollback()
        raise
    finally:
        await session.close()
