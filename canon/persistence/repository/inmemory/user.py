"""In-memory user repository for testing."""

from datetime import datetime, timedelta
from typing import Any, Mapping, Optional

from canon.domain.model.common import utcnow
from canon.domain.model.user import User
from canon.domain.model.user_identity import UserIdentity
from canon.domain.repository.user import UserRepository
from canon.domain.value import AuthProvider, UserId
from canon.persistence.mappers import row_to_user, user_to_dict
from canon.persistence.repository.inmemory.store import InMemoryDatabase
from canon.persistence.schema_guard import SchemaGuard


class InMemoryUserRepository(UserRepository):
    """In-memory implementation of UserRepository for testing.

    When a SchemaGuard is given, writes are narrowed exactly as they are
    against PostgreSQL, so tests can run against a narrow users table.
    """

    def __init__(
        self, db: InMemoryDatabase, schema_guard: SchemaGuard | None = None
    ) -> None:
        self._db = db
        self._schema_guard = schema_guard

    async def _narrow(self, values: Mapping[str, Any]) -> dict[str, Any]:
        if self._schema_guard is None:
            return dict(values)
        validated = await self._schema_guard.pick_existing_columns(values, "users")
        return dict(validated.values)

    def _row(self, user_id: UserId) -> Optional[dict]:
        return self._db.users.get(user_id)

    def _oldest(self, rows: list[dict]) -> Optional[User]:
        users = [row_to_user(r) for r in rows]
        return min(users, key=lambda u: u.created_at, default=None)

    async def find_by_id(self, user_id: UserId) -> Optional[User]:
        """Find a user by ID."""
        row = self._row(user_id)
        return row_to_user(row) if row else None

    async def find_by_email(self, email: str) -> Optional[User]:
        """Find a user by email, case-insensitively."""
        email = email.lower()
        rows = [
            r for r in self._db.users.values() if (r.get("email") or "").lower() == email
        ]
        return self._oldest(rows)

    async def find_by_phone(self, phone: str) -> Optional[User]:
        """Find a user by exact phone number."""
        rows = [r for r in self._db.users.values() if r.get("phone") == phone]
        return self._oldest(rows)

    async def find_by_provider_identity(
        self, provider: AuthProvider, provider_id: str
    ) -> Optional[User]:
        """Find a user by their external provider identity."""
        identity = self._db.find_identity(provider, provider_id)
        if identity is None:
            return None
        return await self.find_by_id(identity.user_id)

    async def find_by_any_provider_id(self, provider_id: str) -> Optional[User]:
        """Find the owner of a provider id, primary identities first."""
        matches = [i for i in self._db.identities if i.provider_id == provider_id]
        matches.sort(key=lambda i: (not i.is_primary, i.created_at))
        for identity in matches:
            user = await self.find_by_id(identity.user_id)
            if user is not None:
                return user
        return None

    async def create_with_identity(self, user: User, identity: UserIdentity) -> User:
        """Create user and identity together; nothing is written on conflict."""
        row = await self._narrow(user_to_dict(user))
        row["id"] = user.id

        self._db.check_unique_identity(identity)
        self._db.users[user.id] = row
        self._db.identities.append(identity)
        return row_to_user(row)

    async def update(
        self, user_id: UserId, changes: Mapping[str, Any]
    ) -> Optional[User]:
        """Apply a partial update to the stored row."""
        row = self._row(user_id)
        if row is None:
            return None
        values = {k: v for k, v in changes.items() if k != "id"}
        if not values:
            return row_to_user(row)
        values.setdefault("updated_at", utcnow())
        row.update(await self._narrow(values))
        return row_to_user(row)

    async def touch_login(
        self, user_id: UserId, now: datetime, min_interval: timedelta
    ) -> bool:
        """Bump login counters unless the previous login is too recent."""
        row = self._row(user_id)
        if row is None:
            return False
        last_login = row.get("last_login")
        if last_login is not None and last_login >= now - min_interval:
            return False
        changes = await self._narrow(
            {"login_count": (row.get("login_count") or 0) + 1, "last_login": now}
        )
        if not changes:
            return False
        row.update(changes)
        return True

    async def find_duplicate_groups(self) -> list[tuple[str, str, list[UserId]]]:
        """Group users sharing an email or phone."""
        groups: list[tuple[str, str, list[UserId]]] = []
        users = sorted(
            (row_to_user(r) for r in self._db.users.values()),
            key=lambda u: u.created_at,
        )
        for field in ("email", "phone"):
            buckets: dict[str, list[UserId]] = {}
            for user in users:
                value = getattr(user, field)
                if not value:
                    continue
                key = value.lower() if field == "email" else value
                buckets.setdefault(key, []).append(user.id)
            for value, ids in sorted(buckets.items()):
                if len(ids) > 1:
                    groups.append((field, value, ids))
        return groups
