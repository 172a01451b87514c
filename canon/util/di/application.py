"""Application layer DI providers."""

from dishka import Scope, provide

from canon.application.usecase.admin import (
    ClearCacheUseCase,
    FindDuplicatesUseCase,
    GetCacheStatsUseCase,
    ResolveIdentifierUseCase,
)
from canon.application.usecase.auth import GetCurrentUserUseCase, LoginUseCase
from canon.application.usecase.identity import (
    LinkIdentityUseCase,
    ListIdentitiesUseCase,
    SetPrimaryIdentityUseCase,
    UnlinkIdentityUseCase,
)
from canon.application.usecase.user import UpdateProfileUseCase
from canon.domain.service import (
    IdentityConsolidationService,
    IdentityResolver,
    JWTService,
    UserService,
)
from canon.util.cache import CredentialCache
from canon.util.di.base import ProviderBase


class ProdApplicationProvider(ProviderBase):
    """Production application use cases provider - concrete, no mocks needed."""

    scope = Scope.REQUEST

    # Auth use cases
    @provide
    def get_login_use_case(
        self,
        consolidation_service: IdentityConsolidationService,
        jwt_service: JWTService,
    ) -> LoginUseCase:
        """Provide login use case."""
        return LoginUseCase(
            consolidation_service=consolidation_service, jwt_service=jwt_service
        )

    @provide
    def get_current_user_use_case(
        self, identity_resolver: IdentityResolver
    ) -> GetCurrentUserUseCase:
        """Provide get current user use case."""
        return GetCurrentUserUseCase(identity_resolver=identity_resolver)

    # Identity use cases
    @provide
    def get_list_identities_use_case(
        self, identity_resolver: IdentityResolver
    ) -> ListIdentitiesUseCase:
        """Provide list identities use case."""
        return ListIdentitiesUseCase(identity_resolver=identity_resolver)

    @provide
    def get_link_identity_use_case(
        self, consolidation_service: IdentityConsolidationService
    ) -> LinkIdentityUseCase:
        """Provide link identity use case."""
        return LinkIdentityUseCase(consolidation_service=consolidation_service)

    @provide
    def get_unlink_identity_use_case(
        self, consolidation_service: IdentityConsolidationService
    ) -> UnlinkIdentityUseCase:
        """Provide unlink identity use case."""
        return UnlinkIdentityUseCase(consolidation_service=consolidation_service)

    @provide
    def get_set_primary_identity_use_case(
        self, consolidation_service: IdentityConsolidationService
    ) -> SetPrimaryIdentityUseCase:
        """Provide set primary identity use case."""
        return SetPrimaryIdentityUseCase(consolidation_service=consolidation_service)

    # User use cases
    @provide
    def get_update_profile_use_case(
        self, user_service: UserService
    ) -> UpdateProfileUseCase:
        """Provide update profile use case."""
        return UpdateProfileUseCase(user_service=user_service)

    # Admin use cases
    @provide
    def get_resolve_identifier_use_case(
        self, identity_resolver: IdentityResolver
    ) -> ResolveIdentifierUseCase:
        """Provide resolve identifier use case."""
        return ResolveIdentifierUseCase(identity_resolver=identity_resolver)

    @provide
    def get_cache_stats_use_case(self, cache: CredentialCache) -> GetCacheStatsUseCase:
        """Provide cache stats use case."""
        return GetCacheStatsUseCase(cache=cache)

    @provide
    def get_clear_cache_use_case(self, cache: CredentialCache) -> ClearCacheUseCase:
        """Provide clear cache use case."""
        return ClearCacheUseCase(cache=cache)

    @provide
    def get_find_duplicates_use_case(
        self, user_service: UserService
    ) -> FindDuplicatesUseCase:
        """Provide find duplicates use case."""
        return FindDuplicatesUseCase(user_service=user_service)
