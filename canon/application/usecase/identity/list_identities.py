"""List identities use case."""

from pydantic import BaseModel

from canon.application.usecase.dto import IdentityInfo
from canon.domain.error import NotFoundError
from canon.domain.service import IdentityResolver


class ListIdentitiesRequest(BaseModel):
    """List identities request."""

    user_id: str


class ListIdentitiesResponse(BaseModel):
    """Identities linked to a user, primary first."""

    identities: list[IdentityInfo]


class ListIdentitiesUseCase:
    """Use case for listing a user's linked identities."""

    def __init__(self, identity_resolver: IdentityResolver) -> None:
        """Initialize list identities use case.

        Args:
            identity_resolver: Canonical identity resolver
        """
        self.identity_resolver = identity_resolver

    async def execute(self, request: ListIdentitiesRequest) -> ListIdentitiesResponse:
        found = await self.identity_resolver.get_user_with_identities(request.user_id)
        if found is None:
            raise NotFoundError("User", request.user_id)
        return ListIdentitiesResponse(
            identities=[IdentityInfo.from_identity(i) for i in found.identities]
        )
