"""Get current user use case."""

from pydantic import BaseModel

from canon.application.usecase.dto import IdentityInfo, UserInfo
from canon.domain.error import NotFoundError
from canon.domain.service import IdentityResolver
from canon.domain.value import AuthMethod


class GetCurrentUserRequest(BaseModel):
    """Get current user request."""

    user_id: str  # From the request's auth context
    auth_method: AuthMethod


class GetCurrentUserResponse(BaseModel):
    """Authentication status of the caller."""

    authenticated: bool = True
    auth_method: AuthMethod
    user: UserInfo
    identities: list[IdentityInfo]


class GetCurrentUserUseCase:
    """Use case for describing the authenticated caller."""

    def __init__(self, identity_resolver: IdentityResolver) -> None:
        """Initialize get current user use case.

        Args:
            identity_resolver: Canonical identity resolver
        """
        self.identity_resolver = identity_resolver

    async def execute(self, request: GetCurrentUserRequest) -> GetCurrentUserResponse:
        """Load the caller and all of their identities.

        Raises:
            NotFoundError: If the user no longer exists
        """
        found = await self.identity_resolver.get_user_with_identities(request.user_id)
        if found is None:
            raise NotFoundError("User", request.user_id)

        return GetCurrentUserResponse(
            auth_method=request.auth_method,
            user=UserInfo.from_user(found.user),
            identities=[IdentityInfo.from_identity(i) for i in found.identities],
        )
