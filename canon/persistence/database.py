"""Database connection and session management.

Provides async database engine and session factory for PostgreSQL.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

import logfire
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from canon.config import Settings
from canon.persistence.error import TransientStoreError


def create_engine(settings: Settings) -> AsyncEngine:
    """Create async database engine.

    Args:
        settings: Application settings with database URL

    Returns:
        Configured async engine
    """
    return create_async_engine(
        settings.database_url,
        echo=settings.debug,  # Log SQL queries in debug mode
        pool_pre_ping=True,  # Verify connections before using
        pool_size=settings.database.pool_size,
        max_overflow=settings.database.max_overflow,
        pool_timeout=settings.database.pool_timeout,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create async session factory.

    Args:
        engine: Database engine

    Returns:
        Session factory for creating database sessions
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,  # Don't expire objects after commit
        autoflush=False,  # Manual flushing for better control
        autocommit=False,  # Explicit transaction management
    )


@asynccontextmanager
async def transient_errors(operation: str) -> AsyncIterator[None]:
    """Translate pool exhaustion and connection loss into TransientStoreError.

    Integrity and programming errors pass through unchanged.

    Args:
        operation: Name used in the log event

    Raises:
        TransientStoreError: If the store is unreachable or saturated
    """
    try:
        yield
    except PoolTimeoutError as e:
        logfire.error("Connection pool exhausted", operation=operation)
        raise TransientStoreError(f"{operation}: connection pool exhausted") from e
    except OperationalError as e:
        logfire.error("Store unavailable", operation=operation, error=str(e))
        raise TransientStoreError(f"{operation}: store unavailable") from e
    except DBAPIError as e:
        if not e.connection_invalidated:
            raise
        logfire.error("Connection lost", operation=operation, error=str(e))
        raise TransientStoreError(f"{operation}: connection lost") from e
