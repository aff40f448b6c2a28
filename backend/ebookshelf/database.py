"""
Ebookshelf Backend: Database Engine & Session Management
==========================================================

What:  Async SQLAlchemy engine, session factory, and FastAPI dependency.
How:   The engine is a process-wide handle created explicitly by
       `init_engine()` at startup and released by `dispose_engine()` at
       shutdown. Nothing here connects at import time, and the engine is
       never re-created implicitly: using it before `init_engine()` is an
       error.
Who:   `get_db_session` is injected into routes; the session it yields is
       handed to repository constructors.

Session lifecycle:
    One session per request. It commits when the handler returns normally
    and rolls back when anything raises.
"""

import logging
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from ebookshelf.config import settings

logger = logging.getLogger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models (shared metadata)."""
    pass


def init_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """
    Create the process-wide engine and session factory.

    Args:
        database_url: Override for settings.database_url (used in tests).

    Raises:
        RuntimeError: If the engine has already been initialized.
    """
    global _engine, _session_factory

    if _engine is not None:
        raise RuntimeError("Database engine is already initialized")

    url = database_url or settings.database_url
    engine_kwargs = {"echo": settings.log_level == "DEBUG"}

    # SQLite (tests) has no server-side pool to size
    if not url.startswith("sqlite"):
        engine_kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )

    _engine = create_async_engine(url, **engine_kwargs)
    # expire_on_commit=False: response serialization reads attributes after commit
    _session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    logger.info("Database engine initialized (%s)", _engine.url.get_backend_name())
    return _engine


def get_engine() -> AsyncEngine:
    if _engine is None:
        raise RuntimeError("Database engine is not initialized; call init_engine() first")
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    if _session_factory is None:
        raise RuntimeError("Database engine is not initialized; call init_engine() first")
    return _session_factory


async def create_schema() -> None:
    """
    Create all tables that do not exist yet.

    The service has no migration tooling; the schema is derived from the
    ORM models at startup.
    """
    # Register every model with Base.metadata
    from ebookshelf.models import book, user  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the factory
        2. Yields it to the route handler
        3. On success: commits the transaction
        4. On error: rolls back and re-raises for the global error handler
        5. Always: closes the session (returns connection to pool)
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def dispose_engine() -> None:
    """
    What:  Gracefully closes all connections in the pool.
    When:  Called during application shutdown (lifespan handler) and by tests.
    """
    global _engine, _session_factory

    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _session_factory = None
    logger.info("Database engine disposed")
