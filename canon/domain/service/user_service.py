"""User domain service."""

from dataclasses import dataclass

import logfire

from canon.domain.error import NotFoundError
from canon.domain.model import User
from canon.domain.repository import UserIdentityRepository, UserRepository
from canon.domain.value import ProfileUpdate, UserId
from canon.util.cache import DeferredInvalidations

from .base import Service
from .cache_invalidation import invalidate_user_aliases


@dataclass
class DuplicateGroup:
    """Accounts that share a secondary identifier.

    Candidates for a manual merge; the first id is the oldest account.
    """

    field: str
    value: str
    user_ids: list[UserId]


class UserService(Service):
    """Domain service for user operations."""

    def __init__(
        self,
        user_repository: UserRepository,
        user_identity_repository: UserIdentityRepository,
        invalidations: DeferredInvalidations,
    ) -> None:
        """Initialize user service.

        Args:
            user_repository: User repository
            user_identity_repository: User identity repository
            invalidations: Request-scoped cache invalidation collector
        """
        self.user_repository = user_repository
        self.user_identity_repository = user_identity_repository
        self.invalidations = invalidations

    async def get_by_id(self, user_id: UserId) -> User:
        """Get user by ID.

        Args:
            user_id: User ID

        Returns:
            User entity

        Raises:
            NotFoundError: If user not found
        """
        with logfire.span("user_service.get_by_id", user_id=str(user_id)):
            user = await self.user_repository.find_by_id(user_id)
            if not user:
                logfire.warn("User not found", user_id=str(user_id))
                raise NotFoundError("User", str(user_id))
            return user

    async def update_profile(self, user_id: UserId, update: ProfileUpdate) -> User:
        """Apply profile changes and drop every cached alias of the user.

        Args:
            user_id: User to update
            update: Fields to change

        Returns:
            The updated user

        Raises:
            NotFoundError: If user not found
        """
        with logfire.span("user_service.update_profile", user_id=str(user_id)):
            before = await self.get_by_id(user_id)
            changes = update.changes()
            if not changes:
                return before

            after = await self.user_repository.update(user_id, changes)
            if after is None:
                raise NotFoundError("User", str(user_id))

            logfire.info(
                "User profile updated", user_id=str(user_id), fields=sorted(changes)
            )
            await invalidate_user_aliases(
                self.invalidations, self.user_identity_repository, before, after
            )
            return after

    async def find_duplicate_candidates(self) -> list[DuplicateGroup]:
        """Report accounts sharing an email or phone number.

        Returns:
            One group per shared value, oldest account first
        """
        with logfire.span("user_service.find_duplicate_candidates"):
            groups = [
                DuplicateGroup(field=field, value=value, user_ids=user_ids)
                for field, value, user_ids in (
                    await self.user_repository.find_duplicate_groups()
                )
            ]
            logfire.info("Duplicate accounts scanned", groups=len(groups))
            return groups
