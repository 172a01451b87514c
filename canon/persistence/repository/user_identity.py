"""UserIdentity repository implementation using PostgreSQL."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from canon.domain.model.common import utcnow
from canon.domain.model.user_identity import UserIdentity
from canon.domain.repository.user_identity import UserIdentityRepository
from canon.domain.value import AuthProvider, UserId, UserIdentityId
from canon.persistence.database import transient_errors
from canon.persistence.mappers import row_to_user_identity, user_identity_to_dict
from canon.persistence.tables import user_identities_table


class PostgresUserIdentityRepository(UserIdentityRepository):
    """PostgreSQL implementation of UserIdentityRepository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session
        """
        self.session = session

    async def find_by_id(self, identity_id: UserIdentityId) -> Optional[UserIdentity]:
        """Get user identity by ID.

        Args:
            identity_id: Identity ID to look up

        Returns:
            UserIdentity if found, None otherwise
        """
        stmt = select(user_identities_table).where(
            user_identities_table.c.id == identity_id
        )
        async with transient_errors("identities.find_by_id"):
            result = await self.session.execute(stmt)
            row = result.mappings().first()

        if not row:
            return None

        return row_to_user_identity(dict(row))

    async def find_by_provider(
        self, provider: AuthProvider, provider_id: str
    ) -> Optional[UserIdentity]:
        """Get user identity by provider and provider ID.

        Args:
            provider: Authentication provider
            provider_id: Provider-specific user ID (sub, phone number, etc.)

        Returns:
            UserIdentity if found, None otherwise
        """
        stmt = select(user_identities_table).where(
            user_identities_table.c.provider == provider.value,
            user_identities_table.c.provider_id == provider_id,
        )
        async with transient_errors("identities.find_by_provider"):
            result = await self.session.execute(stmt)
            row = result.mappings().first()

        if not row:
            return None

        return row_to_user_identity(dict(row))

    async def find_all_by_user_id(self, user_id: UserId) -> list[UserIdentity]:
        """Find all identities for a user, primary first.

        Args:
            user_id: User ID to find identities for

        Returns:
            List of UserIdentity objects (may be empty)
        """
        stmt = (
            select(user_identities_table)
            .where(user_identities_table.c.user_id == user_id)
            .order_by(
                user_identities_table.c.is_primary.desc(),
                user_identities_table.c.created_at,
            )
        )
        async with transient_errors("identities.find_all_by_user_id"):
            result = await self.session.execute(stmt)
            rows = result.mappings().all()

        return [row_to_user_identity(dict(row)) for row in rows]

    async def find_primary_by_user_id(self, user_id: UserId) -> Optional[UserIdentity]:
        """Get primary identity for a user.

        Args:
            user_id: User ID to find primary identity for

        Returns:
            Primary UserIdentity if found, None otherwise
        """
        stmt = select(user_identities_table).where(
            user_identities_table.c.user_id == user_id,
            user_identities_table.c.is_primary == True,  # noqa: E712
        )
        async with transient_errors("identities.find_primary_by_user_id"):
            result = await self.session.execute(stmt)
            row = result.mappings().first()

        if not row:
            return None

        return row_to_user_identity(dict(row))

    async def insert(self, identity: UserIdentity) -> UserIdentity:
        """Insert identity inside a savepoint.

        Raises:
            IntegrityError: If the (provider, provider_id) pair is taken
        """
        stmt = user_identities_table.insert().values(**user_identity_to_dict(identity))
        async with transient_errors("identities.insert"):
            async with self.session.begin_nested():
                await self.session.execute(stmt)
        return identity

    async def delete_by_user_and_provider(
        self, user_id: UserId, provider: AuthProvider
    ) -> list[UserIdentity]:
        """Delete a user's identities for one provider."""
        stmt = (
            user_identities_table.delete()
            .where(
                user_identities_table.c.user_id == user_id,
                user_identities_table.c.provider == provider.value,
            )
            .returning(*user_identities_table.c)
        )
        async with transient_errors("identities.delete_by_user_and_provider"):
            result = await self.session.execute(stmt)
            rows = result.mappings().all()
            await self.session.flush()

        return [row_to_user_identity(dict(row)) for row in rows]

    async def set_primary(self, user_id: UserId, identity_id: UserIdentityId) -> None:
        """Promote one identity and demote its siblings in a single UPDATE."""
        stmt = (
            user_identities_table.update()
            .where(user_identities_table.c.user_id == user_id)
            .values(
                is_primary=user_identities_table.c.id == identity_id,
                updated_at=utcnow(),
            )
        )
        async with transient_errors("identities.set_primary"):
            await self.session.execute(stmt)
            await self.session.flush()
