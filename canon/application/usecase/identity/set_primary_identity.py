"""Set primary identity use case."""

from uuid import UUID

from pydantic import BaseModel

from canon.application.usecase.dto import IdentityInfo
from canon.domain.service import IdentityConsolidationService
from canon.domain.value import UserId, UserIdentityId


class SetPrimaryIdentityRequest(BaseModel):
    """Set primary identity request."""

    user_id: str
    identity_id: UUID


class SetPrimaryIdentityUseCase:
    """Use case for choosing the caller's primary login method."""

    def __init__(self, consolidation_service: IdentityConsolidationService) -> None:
        """Initialize set primary identity use case.

        Args:
            consolidation_service: Identity consolidation domain service
        """
        self.consolidation_service = consolidation_service

    async def execute(self, request: SetPrimaryIdentityRequest) -> IdentityInfo:
        identity = await self.consolidation_service.set_primary_identity(
            UserId(UUID(request.user_id)), UserIdentityId(request.identity_id)
        )
        return IdentityInfo.from_identity(identity)
