"""Unlink identity use case."""

from uuid import UUID

from pydantic import BaseModel

from canon.domain.service import IdentityConsolidationService
from canon.domain.value import AuthProvider, UserId


class UnlinkIdentityRequest(BaseModel):
    """Unlink identity request."""

    user_id: str
    provider: AuthProvider


class UnlinkIdentityUseCase:
    """Use case for removing a login method from the caller's account."""

    def __init__(self, consolidation_service: IdentityConsolidationService) -> None:
        """Initialize unlink identity use case.

        Args:
            consolidation_service: Identity consolidation domain service
        """
        self.consolidation_service = consolidation_service

    async def execute(self, request: UnlinkIdentityRequest) -> None:
        """Unlink the provider.

        Raises:
            LastIdentityError: If it is the user's only login method
            NotFoundError: If the provider is not linked
        """
        await self.consolidation_service.unlink_identity(
            UserId(UUID(request.user_id)), request.provider
        )
