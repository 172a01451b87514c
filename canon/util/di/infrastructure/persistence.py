"""Persistence infrastructure providers."""

from collections.abc import AsyncIterator

from dishka import Scope, provide
import logfire
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from canon.config import Settings
from canon.domain.repository import UserIdentityRepository, UserRepository
from canon.persistence.database import create_engine, create_session_factory
from canon.persistence.repository import (
    PostgresUserIdentityRepository,
    PostgresUserRepository,
)
from canon.persistence.schema_guard import (
    PostgresSchemaInspector,
    SchemaGuard,
    SchemaInspector,
)
from canon.util.cache import DeferredInvalidations
from canon.util.di.base import ProviderBase
from canon.util.observability import instrument_sqlalchemy


class PersistenceProvider(ProviderBase):
    """Persistence component base."""

    __mock_component__ = "persistence"


class ProdPersistenceProvider(PersistenceProvider):
    """Production persistence provider using PostgreSQL."""

    __is_mock__ = False

    scope = Scope.APP

    @provide(scope=Scope.APP)
    async def get_engine(self, settings: Settings) -> AsyncIterator[AsyncEngine]:
        """Provide database engine, disposed at shutdown."""
        engine = create_engine(settings)
        # Instrument SQLAlchemy for observability
        instrument_sqlalchemy(engine)
        yield engine
        await engine.dispose()

    @provide(scope=Scope.APP)
    def get_session_factory(
        self, engine: AsyncEngine
    ) -> async_sessionmaker[AsyncSession]:
        """Provide session factory."""
        return create_session_factory(engine)

    @provide(scope=Scope.APP)
    def get_schema_inspector(self, engine: AsyncEngine) -> SchemaInspector:
        """Provide live schema inspector."""
        return PostgresSchemaInspector(engine)

    @provide(scope=Scope.APP)
    def get_schema_guard(self, inspector: SchemaInspector) -> SchemaGuard:
        """Provide schema guard; column sets are cached for the process."""
        return SchemaGuard(inspector)

    @provide(scope=Scope.REQUEST)
    async def get_session(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        invalidations: DeferredInvalidations,
    ) -> AsyncIterator[AsyncSession]:
        """Provide database session for request scope.

        The session is automatically committed at the end of the request
        if no exception occurred, or rolled back if an exception was raised.
        Cache invalidations recorded during the request are replayed once
        the transaction has ended, so snapshots read by concurrent requests
        before the commit do not outlive it.
        """
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
                logfire.debug("Session committed")
            except Exception as e:
                logfire.warn("Session rollback", error=str(e))
                await session.rollback()
                raise
            finally:
                invalidations.flush()

    @provide(scope=Scope.REQUEST)
    def get_user_repository(
        self, session: AsyncSession, schema_guard: SchemaGuard
    ) -> UserRepository:
        """Provide User repository."""
        return PostgresUserRepository(session, schema_guard)

    @provide(scope=Scope.REQUEST)
    def get_user_identity_repository(
        self, session: AsyncSession
    ) -> UserIdentityRepository:
        """Provide UserIdentity repository."""
        return PostgresUserIdentityRepository(session)
