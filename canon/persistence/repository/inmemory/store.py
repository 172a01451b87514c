"""Shared in-memory store backing the in-memory repositories."""

from sqlalchemy.exc import IntegrityError

from canon.domain.model.user_identity import UserIdentity
from canon.domain.value import AuthProvider, UserId


class InMemoryDatabase:
    """Rows shared by the in-memory user and identity repositories.

    User rows are plain dicts keyed by column name so a narrowed schema
    can be simulated; identities are stored as entities.
    """

    def __init__(self) -> None:
        self.users: dict[UserId, dict] = {}
        self.identities: list[UserIdentity] = []

    def find_identity(
        self, provider: AuthProvider, provider_id: str
    ) -> UserIdentity | None:
        for identity in self.identities:
            if identity.provider == provider and identity.provider_id == provider_id:
                return identity
        return None

    def check_unique_identity(self, identity: UserIdentity) -> None:
        """Mirror of the (provider, provider_id) unique constraint."""
        if self.find_identity(identity.provider, identity.provider_id) is not None:
            raise IntegrityError(
                "duplicate key value violates unique constraint "
                '"uq_provider_identity"',
                None,
                Exception(),
            )
