"""Update user profile use case."""

from uuid import UUID

from pydantic import BaseModel, Field

from canon.application.usecase.dto import UserInfo
from canon.domain.service import UserService
from canon.domain.value import ProfileUpdate, UserId


class UpdateProfileRequest(BaseModel):
    """Update user profile request."""

    user_id: str  # From authenticated user
    update: ProfileUpdate = Field(default_factory=ProfileUpdate)


class UpdateProfileUseCase:
    """Use case for updating a user's profile.

    Identity fields (providers, primary provider) are not editable here.
    """

    def __init__(self, user_service: UserService) -> None:
        """Initialize update profile use case.

        Args:
            user_service: User domain service
        """
        self.user_service = user_service

    async def execute(self, request: UpdateProfileRequest) -> UserInfo:
        """Apply the update.

        Raises:
            NotFoundError: If user not found
        """
        user = await self.user_service.update_profile(
            UserId(UUID(request.user_id)), request.update
        )
        return UserInfo.from_user(user)
