"""PostgreSQL implementation of User repository."""

from datetime import datetime, timedelta
from typing import Any, Mapping, Optional

import logfire
from sqlalchemy import Select, func, or_, select
from sqlalchemy.dialects.postgresql import aggregate_order_by
from sqlalchemy.ext.asyncio import AsyncSession

from canon.domain.model import User, UserIdentity
from canon.domain.repository import UserRepository
from canon.domain.value import AuthProvider, UserId
from canon.persistence.database import transient_errors
from canon.persistence.mappers import row_to_user, user_identity_to_dict, user_to_dict
from canon.persistence.schema_guard import SchemaGuard
from canon.persistence.tables import user_identities_table, users_table


class PostgresUserRepository(UserRepository):
    """PostgreSQL implementation of UserRepository.

    Every statement against ``users`` is narrowed to the live column set,
    since the table is shared and may not match our model.
    """

    def __init__(self, session: AsyncSession, schema_guard: SchemaGuard) -> None:
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session
            schema_guard: Live-schema filter for the shared users table
        """
        self.session = session
        self.schema_guard = schema_guard

    async def _select_users(self) -> Select:
        columns = await self.schema_guard.readable_columns(users_table)
        return select(*columns)

    async def _has_columns(self, *names: str) -> bool:
        columns = await self.schema_guard.get_existing_columns(users_table.name)
        return set(names) <= columns

    async def _oldest_first(self, stmt: Select) -> Select:
        if await self._has_columns("created_at"):
            return stmt.order_by(users_table.c.created_at)
        return stmt

    async def _first(self, stmt: Select, operation: str) -> Optional[User]:
        async with transient_errors(operation):
            result = await self.session.execute(stmt.limit(1))
            row = result.mappings().first()
        return row_to_user(dict(row)) if row else None

    async def find_by_id(self, user_id: UserId) -> Optional[User]:
        """Find a user by ID.

        Args:
            user_id: User ID to look up

        Returns:
            User if found, None otherwise
        """
        stmt = (await self._select_users()).where(users_table.c.id == user_id)
        return await self._first(stmt, "users.find_by_id")

    async def find_by_email(self, email: str) -> Optional[User]:
        """Find a user by email, oldest account first."""
        if not await self._has_columns("email"):
            return None
        stmt = (await self._select_users()).where(
            func.lower(users_table.c.email) == email.lower()
        )
        return await self._first(await self._oldest_first(stmt), "users.find_by_email")

    async def find_by_phone(self, phone: str) -> Optional[User]:
        """Find a user by exact phone number."""
        if not await self._has_columns("phone"):
            return None
        stmt = (await self._select_users()).where(users_table.c.phone == phone)
        return await self._first(await self._oldest_first(stmt), "users.find_by_phone")

    async def find_by_provider_identity(
        self, provider: AuthProvider, provider_id: str
    ) -> Optional[User]:
        """Find a user by their external provider identity.

        Joins user_identities and users tables.

        Args:
            provider: The authentication provider
            provider_id: The user's ID on that provider

        Returns:
            User if found, None otherwise
        """
        stmt = (
            (await self._select_users())
            .select_from(
                users_table.join(
                    user_identities_table,
                    users_table.c.id == user_identities_table.c.user_id,
                )
            )
            .where(
                user_identities_table.c.provider == provider.value,
                user_identities_table.c.provider_id == provider_id,
            )
        )
        return await self._first(stmt, "users.find_by_provider_identity")

    async def find_by_any_provider_id(self, provider_id: str) -> Optional[User]:
        """Find the owner of a provider id under any provider.

        Primary identities win, then the oldest link.
        """
        stmt = (
            (await self._select_users())
            .select_from(
                users_table.join(
                    user_identities_table,
                    users_table.c.id == user_identities_table.c.user_id,
                )
            )
            .where(user_identities_table.c.provider_id == provider_id)
            .order_by(
                user_identities_table.c.is_primary.desc(),
                user_identities_table.c.created_at,
            )
        )
        return await self._first(stmt, "users.find_by_any_provider_id")

    async def create_with_identity(self, user: User, identity: UserIdentity) -> User:
        """Insert a user and its first identity inside a savepoint.

        A uniqueness violation rolls back the savepoint only, so the request
        transaction stays usable for re-resolution.

        Raises:
            IntegrityError: If (provider, provider_id) is already taken
        """
        user_insert = await self.schema_guard.build_safe_insert(
            user_to_dict(user), users_table.name
        )
        identity_insert = user_identities_table.insert().values(
            **user_identity_to_dict(identity)
        )

        async with transient_errors("users.create_with_identity"):
            async with self.session.begin_nested():
                await self.session.execute(user_insert)
                await self.session.execute(identity_insert)

        logfire.info(
            "User created",
            user_id=str(user.id),
            provider=identity.provider.value,
        )
        created = await self.find_by_id(user.id)
        return created if created is not None else user

    async def update(
        self, user_id: UserId, changes: Mapping[str, Any]
    ) -> Optional[User]:
        """Apply a partial update narrowed to live columns."""
        stmt = await self.schema_guard.build_safe_update(
            changes, users_table.name, "id", user_id
        )
        if stmt is None:
            return await self.find_by_id(user_id)

        async with transient_errors("users.update"):
            result = await self.session.execute(stmt)
            await self.session.flush()

        if result.rowcount == 0:
            return None
        return await self.find_by_id(user_id)

    async def touch_login(
        self, user_id: UserId, now: datetime, min_interval: timedelta
    ) -> bool:
        """Bump login counters unless the previous login is too recent.

        The recency check lives in the WHERE clause so concurrent logins
        bump at most once per interval.
        """
        columns = await self.schema_guard.get_existing_columns(users_table.name)
        if not {"login_count", "last_login"} <= columns:
            return False

        values: dict[str, Any] = {
            "login_count": func.coalesce(users_table.c.login_count, 0) + 1,
            "last_login": now,
        }
        if "updated_at" in columns:
            values["updated_at"] = now

        stmt = (
            users_table.update()
            .where(
                users_table.c.id == user_id,
                or_(
                    users_table.c.last_login.is_(None),
                    users_table.c.last_login < now - min_interval,
                ),
            )
            .values(**values)
        )
        async with transient_errors("users.touch_login"):
            result = await self.session.execute(stmt)
            await self.session.flush()
        return result.rowcount > 0

    async def find_duplicate_groups(self) -> list[tuple[str, str, list[UserId]]]:
        """Group users sharing an email (case-insensitive) or a phone."""
        columns = await self.schema_guard.get_existing_columns(users_table.name)
        groups: list[tuple[str, str, list[UserId]]] = []
        order = (
            users_table.c.created_at if "created_at" in columns else users_table.c.id
        )

        for field in ("email", "phone"):
            if field not in columns:
                continue
            key = users_table.c[field]
            if field == "email":
                key = func.lower(key)
            stmt = (
                select(
                    key.label("value"),
                    func.array_agg(aggregate_order_by(users_table.c.id, order)).label(
                        "ids"
                    ),
                )
                .where(users_table.c[field].is_not(None))
                .group_by(key)
                .having(func.count() > 1)
                .order_by(key)
            )
            async with transient_errors("users.find_duplicate_groups"):
                result = await self.session.execute(stmt)
            for row in result.mappings().all():
                groups.append(
                    (field, row["value"], [UserId(uid) for uid in row["ids"]])
                )

        return groups
