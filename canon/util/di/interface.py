"""Interface layer DI providers."""

from dishka import Scope, provide

from canon.config import AuthSettings
from canon.domain.service import (
    IdentityConsolidationService,
    IdentityResolver,
    JWTService,
)
from canon.interface.api.auth_context import AuthContextMiddleware
from canon.util.di.base import ProviderBase


class ProdInterfaceProvider(ProviderBase):
    """Request authentication components - concrete, no mocks needed."""

    @provide(scope=Scope.REQUEST)
    def get_auth_context_middleware(
        self,
        jwt_service: JWTService,
        identity_resolver: IdentityResolver,
        consolidation_service: IdentityConsolidationService,
        auth_settings: AuthSettings,
    ) -> AuthContextMiddleware:
        """Provide the per-request authentication chain."""
        return AuthContextMiddleware(
            jwt_service=jwt_service,
            identity_resolver=identity_resolver,
            consolidation_service=consolidation_service,
            auth_settings=auth_settings,
        )
