"""Login use case."""

from pydantic import BaseModel, Field

from canon.application.usecase.dto import UserInfo
from canon.domain.service import IdentityConsolidationService, JWTService
from canon.domain.value import AuthProvider, LoginProfile


class LoginRequest(BaseModel):
    """Login event handed over by a provider collaborator.

    The collaborator has already verified the credential with the
    provider; this service only decides which account it belongs to.
    """

    provider: AuthProvider
    provider_id: str = Field(min_length=1, max_length=255)
    profile: LoginProfile = Field(default_factory=LoginProfile)
    redirect: bool = False  # Browser flow: answer with a redirect instead of JSON


class LoginResponse(BaseModel):
    """Login response."""

    token: str
    user: UserInfo


class LoginUseCase:
    """Use case for completing a login from any provider."""

    def __init__(
        self,
        consolidation_service: IdentityConsolidationService,
        jwt_service: JWTService,
    ) -> None:
        """Initialize login use case.

        Args:
            consolidation_service: Identity consolidation domain service
            jwt_service: JWT token domain service
        """
        self.consolidation_service = consolidation_service
        self.jwt_service = jwt_service

    async def execute(self, request: LoginRequest) -> LoginResponse:
        """Execute login flow.

        Steps:
        1. Consolidate the credential onto a canonical user
        2. Issue a JWT for that user

        Args:
            request: Login event

        Returns:
            JWT token and the canonical user

        Raises:
            IdentityConflictError: If the credential belongs to another account
        """
        user = await self.consolidation_service.consolidate_on_login(
            request.provider, request.provider_id, request.profile
        )
        token = self.jwt_service.create_token(
            str(user.id), provider=request.provider.value
        )
        return LoginResponse(token=token, user=UserInfo.from_user(user))
