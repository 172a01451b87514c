"""User repository interface."""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Mapping, Optional

from canon.domain.model.user import User
from canon.domain.model.user_identity import UserIdentity
from canon.domain.value import AuthProvider, UserId


class UserRepository(ABC):
    """Repository for the canonical User aggregate.

    Lookups return None on a miss. Infrastructure failures raise.
    """

    @abstractmethod
    async def find_by_id(self, user_id: UserId) -> Optional[User]:
        """Find a user by primary key.

        Args:
            user_id: The user's unique identifier

        Returns:
            The user if found, None otherwise
        """
        pass

    @abstractmethod
    async def find_by_email(self, email: str) -> Optional[User]:
        """Find a user by email, case-insensitively.

        Emails are not unique in the shared store; the oldest account wins.

        Args:
            email: Email address

        Returns:
            The user if found, None otherwise
        """
        pass

    @abstractmethod
    async def find_by_phone(self, phone: str) -> Optional[User]:
        """Find a user by exact phone number.

        Args:
            phone: Phone number exactly as stored

        Returns:
            The user if found, None otherwise
        """
        pass

    @abstractmethod
    async def find_by_provider_identity(
        self, provider: AuthProvider, provider_id: str
    ) -> Optional[User]:
        """Find the owner of a single provider credential.

        Args:
            provider: The authentication provider
            provider_id: The user's ID on that provider

        Returns:
            The owning user if found, None otherwise
        """
        pass

    @abstractmethod
    async def find_by_any_provider_id(self, provider_id: str) -> Optional[User]:
        """Find the owner of a provider id under any provider.

        Primary identities are preferred, then the oldest identity.

        Args:
            provider_id: Opaque provider id

        Returns:
            The owning user if found, None otherwise
        """
        pass

    @abstractmethod
    async def create_with_identity(self, user: User, identity: UserIdentity) -> User:
        """Create a user and its first identity atomically.

        Args:
            user: New user
            identity: First identity of the user

        Returns:
            The created user as stored

        Raises:
            IntegrityError: If (provider, provider_id) is already taken;
                nothing is written in that case
        """
        pass

    @abstractmethod
    async def update(
        self, user_id: UserId, changes: Mapping[str, Any]
    ) -> Optional[User]:
        """Apply a partial update.

        Fields without a live column are dropped.

        Args:
            user_id: User to update
            changes: Field name to new value

        Returns:
            The updated user, or None if the user does not exist
        """
        pass

    @abstractmethod
    async def touch_login(
        self, user_id: UserId, now: datetime, min_interval: timedelta
    ) -> bool:
        """Bump login_count and last_login unless the last login is recent.

        Args:
            user_id: User that logged in
            now: Current time
            min_interval: Minimum age of the previous login before bumping

        Returns:
            True if the counters were written
        """
        pass

    @abstractmethod
    async def find_duplicate_groups(self) -> list[tuple[str, str, list[UserId]]]:
        """Group users sharing an email or phone.

        Returns:
            (field, value, user ids oldest first) for every group larger than one
        """
        pass
