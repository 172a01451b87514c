"""Unit tests for the in-memory user repository against narrow schemas."""

from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from canon.domain.model import User, UserIdentity
from canon.domain.model.common import utcnow
from canon.domain.value import AuthProvider, UserId, UserIdentityId
from canon.persistence.repository.inmemory import (
    InMemoryDatabase,
    InMemoryUserRepository,
)
from canon.persistence.schema_guard import SchemaGuard, StaticSchemaInspector


def narrow_repo(db: InMemoryDatabase, *columns: str) -> InMemoryUserRepository:
    guard = SchemaGuard(StaticSchemaInspector({"users": ["id", *columns]}))
    return InMemoryUserRepository(db, guard)


def account(provider_id: str, **fields) -> tuple[User, UserIdentity]:
    user = User(id=UserId(uuid4()), **fields)
    identity = UserIdentity(
        id=UserIdentityId(uuid4()),
        user_id=user.id,
        provider=AuthProvider.GOOGLE,
        provider_id=provider_id,
        is_primary=True,
    )
    return user, identity


class TestNarrowSchema:
    @pytest.mark.asyncio
    async def test_create_keeps_only_live_columns(self):
        db = InMemoryDatabase()
        repo = narrow_repo(db, "full_name", "email")
        user, identity = account("g-1", full_name="Asha", email="a@x.io", rank="Master")

        created = await repo.create_with_identity(user, identity)

        assert set(db.users[user.id]) == {"id", "full_name", "email"}
        assert created.rank is None
        assert created.full_name == "Asha"

    @pytest.mark.asyncio
    async def test_touch_login_without_counter_columns_is_a_no_op(self):
        db = InMemoryDatabase()
        repo = narrow_repo(db, "full_name")
        user, identity = account("g-1")
        await repo.create_with_identity(user, identity)

        assert not await repo.touch_login(user.id, utcnow(), timedelta(hours=1))


class TestCreateWithIdentity:
    @pytest.mark.asyncio
    async def test_duplicate_credential_writes_nothing(self):
        db = InMemoryDatabase()
        repo = InMemoryUserRepository(db)
        first, first_identity = account("g-1")
        second, second_identity = account("g-1")
        await repo.create_with_identity(first, first_identity)

        with pytest.raises(IntegrityError):
            await repo.create_with_identity(second, second_identity)

        assert list(db.users) == [first.id]
        assert len(db.identities) == 1
