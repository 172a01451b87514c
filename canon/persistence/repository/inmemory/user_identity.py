"""In-memory user identity repository for testing."""

from typing import Optional

from canon.domain.model.common import utcnow
from canon.domain.model.user_identity import UserIdentity
from canon.domain.repository.user_identity import UserIdentityRepository
from canon.domain.value import AuthProvider, UserId, UserIdentityId
from canon.persistence.repository.inmemory.store import InMemoryDatabase


class InMemoryUserIdentityRepository(UserIdentityRepository):
    """In-memory implementation of UserIdentityRepository for testing."""

    def __init__(self, db: InMemoryDatabase) -> None:
        self._db = db

    async def find_by_id(self, identity_id: UserIdentityId) -> Optional[UserIdentity]:
        """Find user identity by ID."""
        for identity in self._db.identities:
            if identity.id == identity_id:
                return identity
        return None

    async def find_by_provider(
        self, provider: AuthProvider, provider_id: str
    ) -> Optional[UserIdentity]:
        """Find user identity by provider and provider ID."""
        return self._db.find_identity(provider, provider_id)

    async def find_all_by_user_id(self, user_id: UserId) -> list[UserIdentity]:
        """Find all identities for a user, primary first."""
        matches = [i for i in self._db.identities if i.user_id == user_id]
        matches.sort(key=lambda i: (not i.is_primary, i.created_at))
        return matches

    async def find_primary_by_user_id(self, user_id: UserId) -> Optional[UserIdentity]:
        """Get primary identity for a user."""
        for identity in self._db.identities:
            if identity.user_id == user_id and identity.is_primary:
                return identity
        return None

    async def insert(self, identity: UserIdentity) -> UserIdentity:
        """Insert identity, enforcing the (provider, provider_id) constraint."""
        self._db.check_unique_identity(identity)
        self._db.identities.append(identity)
        return identity

    async def delete_by_user_and_provider(
        self, user_id: UserId, provider: AuthProvider
    ) -> list[UserIdentity]:
        """Delete a user's identities for one provider."""
        deleted = [
            i
            for i in self._db.identities
            if i.user_id == user_id and i.provider == provider
        ]
        self._db.identities = [i for i in self._db.identities if i not in deleted]
        return deleted

    async def set_primary(self, user_id: UserId, identity_id: UserIdentityId) -> None:
        """Promote one identity and demote its siblings."""
        now = utcnow()
        self._db.identities = [
            i.model_copy(update={"is_primary": i.id == identity_id, "updated_at": now})
            if i.user_id == user_id
            else i
            for i in self._db.identities
        ]
