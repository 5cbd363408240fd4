"""
Persons API — Database Session Management
===========================================

What:  Async SQLAlchemy engine, session factory, and FastAPI dependency.
Why:   Centralizes all database connection logic in one place.
How:   init_engine() builds the engine and session factory from a validated
       URL; get_db_session() yields a session per request that commits on
       success and rolls back on error.
When:  The engine is created by the lifespan once DATABASE_URL has been
       checked, and disposed on shutdown.

Why not create the engine at import time:
    The connection string is required and validated at startup. Building the
    engine at import would turn a clear ConfigurationError into an obscure
    SQLAlchemy ArgumentError raised from whatever module imported us first.
"""

import logging
from typing import AsyncGenerator, Optional

from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import settings
from app.exceptions import DatabaseError

logger = logging.getLogger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares one metadata object, which Alembic reads for --autogenerate.
    """
    pass


def engine_options(database_url: str) -> dict:
    """
    Pool options for create_async_engine.

    SQLite engines use StaticPool or NullPool, which reject pool sizing
    arguments, so those are only passed for server databases.
    """
    options = {"echo": settings.log_level == "DEBUG"}
    if make_url(database_url).get_backend_name() != "sqlite":
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return options


def init_engine(database_url: str) -> AsyncEngine:
    """
    Create the request-serving engine and session factory.

    Replaces any engine created earlier (the old one is not disposed here;
    callers that re-initialize are expected to have called dispose_engine).
    """
    global _engine, _session_factory
    _engine = create_async_engine(database_url, **engine_options(database_url))
    # expire_on_commit=False: response models are built from ORM objects
    # after the request's commit
    _session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    logger.info("Database engine initialized (%s)", make_url(database_url).render_as_string(hide_password=True))
    return _engine


def get_engine() -> AsyncEngine:
    """Returns the active engine, or raises if init_engine() was never called."""
    if _engine is None:
        raise RuntimeError("Database engine is not initialized; call init_engine() first")
    return _engine


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the factory
        2. Yields it to the route handler
        3. On success: commits the transaction (failures become DatabaseError)
        4. On error: rolls back and re-raises for the global error handler
        5. Always: closes the session (returns connection to pool)

    Example usage in a route:
        @router.get("/persons")
        async def list_persons(db: AsyncSession = Depends(get_db_session)):
            ...
    """
    if _session_factory is None:
        raise RuntimeError("Database engine is not initialized; call init_engine() first")

    async with _session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            await session.close()
            raise

        try:
            await session.commit()
        except SQLAlchemyError as e:
            logger.error("Database error committing transaction: %s", str(e), exc_info=True)
            await session.rollback()
            raise DatabaseError(
                message="Could not save changes. Please try again.",
                context={"error_type": type(e).__name__},
            )
        finally:
            await session.close()


async def dispose_engine() -> None:
    """
    What:  Gracefully closes all connections in the pool.
    When:  Called during application shutdown (lifespan handler).
    """
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
