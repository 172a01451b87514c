"""Domain layer DI providers."""

from collections.abc import Iterator

from dishka import Scope, provide

from canon.config import AuthSettings, IdentitySettings
from canon.domain.repository import UserIdentityRepository, UserRepository
from canon.domain.service import (
    IdentityConsolidationService,
    IdentityResolver,
    JWTService,
    UserService,
)
from canon.util.cache import CredentialCache, DeferredInvalidations
from canon.util.di.base import ProviderBase


class ProdDomainProvider(ProviderBase):
    """Production domain services provider - concrete, no mocks needed.

    Domain services are REQUEST-scoped to align with repository/session lifecycle.
    Each HTTP request gets fresh service instances with their own transaction;
    the credential cache they share is APP-scoped.
    """

    scope = Scope.REQUEST

    @provide
    def get_jwt_service(self, auth_settings: AuthSettings) -> JWTService:
        """Provide JWT token domain service."""
        return JWTService(auth_settings=auth_settings)

    @provide
    def get_identity_resolver(
        self,
        user_repository: UserRepository,
        user_identity_repository: UserIdentityRepository,
        cache: CredentialCache,
        identity_settings: IdentitySettings,
    ) -> IdentityResolver:
        """Provide identity resolver."""
        return IdentityResolver(
            user_repository=user_repository,
            user_identity_repository=user_identity_repository,
            cache=cache,
            identity_settings=identity_settings,
        )

    @provide
    def get_invalidations(
        self, cache: CredentialCache
    ) -> Iterator[DeferredInvalidations]:
        """Provide the request's invalidation collector.

        Recorded invalidations are replayed when the request ends; the
        PostgreSQL session also replays them right after it commits.
        """
        invalidations = DeferredInvalidations(cache)
        try:
            yield invalidations
        finally:
            invalidations.flush()

    @provide
    def get_identity_consolidation_service(
        self,
        user_repository: UserRepository,
        user_identity_repository: UserIdentityRepository,
        identity_resolver: IdentityResolver,
        invalidations: DeferredInvalidations,
        identity_settings: IdentitySettings,
    ) -> IdentityConsolidationService:
        """Provide identity consolidation domain service."""
        return IdentityConsolidationService(
            user_repository=user_repository,
            user_identity_repository=user_identity_repository,
            identity_resolver=identity_resolver,
            invalidations=invalidations,
            identity_settings=identity_settings,
        )

    @provide
    def get_user_service(
        self,
        user_repository: UserRepository,
        user_identity_repository: UserIdentityRepository,
        invalidations: DeferredInvalidations,
    ) -> UserService:
        """Provide user domain service."""
        return UserService(
            user_repository=user_repository,
            user_identity_repository=user_identity_repository,
            invalidations=invalidations,
        )
