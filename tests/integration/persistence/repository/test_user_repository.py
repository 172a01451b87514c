"""Integration tests for the PostgreSQL identity repositories.

Need a migrated PostgreSQL at DATABASE__URL. Run with ``pytest -m integration``.
"""

from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from canon.domain.model import User, UserIdentity
from canon.domain.model.common import utcnow
from canon.domain.repository import UserIdentityRepository, UserRepository
from canon.domain.value import AuthProvider, UserId, UserIdentityId
from tests.harness import create_env_fixture

pytestmark = pytest.mark.integration

# Integration test fixture
integration_env = create_env_fixture(unmock={"persistence"})


def new_account(provider_id: str, **fields) -> tuple[User, UserIdentity]:
    user = User(id=UserId(uuid4()), full_name="Integration User", **fields)
    identity = UserIdentity(
        id=UserIdentityId(uuid4()),
        user_id=user.id,
        provider=AuthProvider.GOOGLE,
        provider_id=provider_id,
        is_primary=True,
    )
    return user, identity


class TestPostgresUserRepository:
    """Round trips against the live users / user_identities tables."""

    @pytest.mark.asyncio
    async def test_create_and_find_by_every_key(self, integration_env):
        user_repo = await integration_env.get(UserRepository)
        provider_id = f"it-{uuid4()}"
        email = f"{uuid4().hex}@example.com"
        user, identity = new_account(provider_id, email=email)

        await user_repo.create_with_identity(user, identity)

        assert (await user_repo.find_by_id(user.id)).email == email
        assert (await user_repo.find_by_email(email.upper())).id == user.id
        assert (
            await user_repo.find_by_provider_identity(AuthProvider.GOOGLE, provider_id)
        ).id == user.id
        assert (await user_repo.find_by_any_provider_id(provider_id)).id == user.id

    @pytest.mark.asyncio
    async def test_duplicate_credential_rolls_back_only_the_savepoint(
        self, integration_env
    ):
        user_repo = await integration_env.get(UserRepository)
        provider_id = f"it-{uuid4()}"
        winner, winner_identity = new_account(provider_id)
        loser, loser_identity = new_account(provider_id)
        await user_repo.create_with_identity(winner, winner_identity)

        with pytest.raises(IntegrityError):
            await user_repo.create_with_identity(loser, loser_identity)

        # The session is still usable and the loser left nothing behind
        assert await user_repo.find_by_id(loser.id) is None
        assert (
            await user_repo.find_by_provider_identity(AuthProvider.GOOGLE, provider_id)
        ).id == winner.id

    @pytest.mark.asyncio
    async def test_touch_login_respects_interval(self, integration_env):
        user_repo = await integration_env.get(UserRepository)
        user, identity = new_account(f"it-{uuid4()}")
        await user_repo.create_with_identity(user, identity)
        now = utcnow()

        assert await user_repo.touch_login(user.id, now, timedelta(hours=1))
        assert not await user_repo.touch_login(user.id, now, timedelta(hours=1))
        assert (await user_repo.find_by_id(user.id)).login_count == 1


class TestPostgresUserIdentityRepository:
    @pytest.mark.asyncio
    async def test_set_primary_leaves_exactly_one(self, integration_env):
        user_repo = await integration_env.get(UserRepository)
        identity_repo = await integration_env.get(UserIdentityRepository)
        user, google = new_account(f"it-{uuid4()}")
        await user_repo.create_with_identity(user, google)
        whatsapp = await identity_repo.insert(
            UserIdentity(
                id=UserIdentityId(uuid4()),
                user_id=user.id,
                provider=AuthProvider.WHATSAPP,
                provider_id=f"it-{uuid4()}",
            )
        )

        await identity_repo.set_primary(user.id, whatsapp.id)

        identities = await identity_repo.find_all_by_user_id(user.id)
        assert [(i.provider, i.is_primary) for i in identities] == [
            (AuthProvider.WHATSAPP, True),
            (AuthProvider.GOOGLE, False),
        ]
