"""User identity repository interface."""

from abc import ABC, abstractmethod
from typing import Optional

from canon.domain.model.user_identity import UserIdentity
from canon.domain.value import AuthProvider, UserId, UserIdentityId


class UserIdentityRepository(ABC):
    """Repository for UserIdentity entity.

    Manages the relationship between users and their external
    authentication provider identities.
    """

    @abstractmethod
    async def find_by_id(self, identity_id: UserIdentityId) -> Optional[UserIdentity]:
        """Find an identity by ID.

        Args:
            identity_id: The identity's unique identifier

        Returns:
            The identity if found, None otherwise
        """
        pass

    @abstractmethod
    async def find_by_provider(
        self, provider: AuthProvider, provider_id: str
    ) -> Optional[UserIdentity]:
        """Find an identity by provider and provider ID.

        Args:
            provider: The authentication provider
            provider_id: The user's ID on that provider

        Returns:
            The identity if found, None otherwise
        """
        pass

    @abstractmethod
    async def find_all_by_user_id(self, user_id: UserId) -> list[UserIdentity]:
        """Get all identities linked to a user, primary first then oldest.

        Args:
            user_id: The user's unique identifier

        Returns:
            List of identities (may be empty)
        """
        pass

    @abstractmethod
    async def find_primary_by_user_id(self, user_id: UserId) -> Optional[UserIdentity]:
        """Get the primary identity for a user.

        Args:
            user_id: The user's unique identifier

        Returns:
            The primary identity if found, None otherwise
        """
        pass

    @abstractmethod
    async def insert(self, identity: UserIdentity) -> UserIdentity:
        """Insert a new identity.

        Args:
            identity: The identity to insert

        Returns:
            The inserted identity

        Raises:
            IntegrityError: If (provider, provider_id) is already linked
        """
        pass

    @abstractmethod
    async def delete_by_user_and_provider(
        self, user_id: UserId, provider: AuthProvider
    ) -> list[UserIdentity]:
        """Delete a user's identities for one provider.

        Args:
            user_id: Owning user
            provider: Provider to unlink

        Returns:
            The deleted identities (empty if none matched)
        """
        pass

    @abstractmethod
    async def set_primary(self, user_id: UserId, identity_id: UserIdentityId) -> None:
        """Mark one identity primary and demote its siblings in one step.

        Args:
            user_id: Owning user
            identity_id: Identity to promote
        """
        pass
