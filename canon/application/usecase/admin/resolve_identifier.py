"""Resolve identifier use case (admin support tool)."""

from pydantic import BaseModel, Field

from canon.application.usecase.dto import IdentityInfo, UserInfo
from canon.domain.error import NotFoundError
from canon.domain.service import IdentityResolver


class ResolveIdentifierRequest(BaseModel):
    """Resolve identifier request."""

    identifier: str = Field(min_length=1)


class ResolveIdentifierResponse(BaseModel):
    """Account an identifier resolves to."""

    identifier: str
    user: UserInfo
    identities: list[IdentityInfo]


class ResolveIdentifierUseCase:
    """Use case for looking up which account an identifier belongs to."""

    def __init__(self, identity_resolver: IdentityResolver) -> None:
        self.identity_resolver = identity_resolver

    async def execute(
        self, request: ResolveIdentifierRequest
    ) -> ResolveIdentifierResponse:
        """Resolve the identifier.

        Raises:
            NotFoundError: If nothing matches
        """
        found = await self.identity_resolver.get_user_with_identities(
            request.identifier
        )
        if found is None:
            raise NotFoundError("User", request.identifier)
        return ResolveIdentifierResponse(
            identifier=request.identifier,
            user=UserInfo.from_user(found.user),
            identities=[IdentityInfo.from_identity(i) for i in found.identities],
        )
