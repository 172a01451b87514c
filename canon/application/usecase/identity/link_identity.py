"""Link identity use case."""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from canon.application.usecase.dto import IdentityInfo
from canon.domain.service import IdentityConsolidationService
from canon.domain.value import AuthProvider, LinkIdentityRequest, UserId


class LinkIdentityUseCaseRequest(BaseModel):
    """Link identity request."""

    user_id: str  # From authenticated user
    provider: AuthProvider
    provider_id: str = Field(min_length=1, max_length=255)
    metadata: dict[str, Any] = Field(default_factory=dict)


class LinkIdentityUseCase:
    """Use case for linking another login method to the caller's account."""

    def __init__(self, consolidation_service: IdentityConsolidationService) -> None:
        """Initialize link identity use case.

        Args:
            consolidation_service: Identity consolidation domain service
        """
        self.consolidation_service = consolidation_service

    async def execute(self, request: LinkIdentityUseCaseRequest) -> IdentityInfo:
        """Link the credential; repeating the call is harmless.

        Raises:
            AlreadyLinkedError: If the credential belongs to another user
            NotFoundError: If the user does not exist
        """
        identity = await self.consolidation_service.link_identity(
            UserId(UUID(request.user_id)),
            LinkIdentityRequest(
                provider=request.provider,
                provider_id=request.provider_id,
                metadata=request.metadata,
            ),
        )
        return IdentityInfo.from_identity(identity)
