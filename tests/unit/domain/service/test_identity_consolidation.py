"""Unit tests for IdentityConsolidationService."""

import asyncio
from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from canon.config import IdentitySettings
from canon.domain.error import (
    AlreadyLinkedError,
    IdentityConflictError,
    LastIdentityError,
    NotFoundError,
)
from canon.domain.model import UserIdentity
from canon.domain.model.common import utcnow
from canon.domain.service import IdentityConsolidationService, IdentityResolver
from canon.domain.value import (
    AuthProvider,
    LinkIdentityRequest,
    LoginProfile,
    UserId,
    UserIdentityId,
)
from canon.persistence.repository.inmemory import (
    InMemoryUserIdentityRepository,
    InMemoryUserRepository,
)
from canon.util.cache import CredentialCache, DeferredInvalidations
from tests.conftest import seed_user


def build_service(user_repo, identity_repo, settings=None):
    settings = settings or IdentitySettings()
    cache = CredentialCache()
    resolver = IdentityResolver(user_repo, identity_repo, cache, settings)
    return IdentityConsolidationService(
        user_repo, identity_repo, resolver, DeferredInvalidations(cache), settings
    )


class InterleavingUserRepository(InMemoryUserRepository):
    """Yields to the event loop after every provider lookup.

    Concurrent logins all observe "no owner yet" before any of them
    writes, which is the window a real first-login race opens.
    """

    async def find_by_provider_identity(self, provider, provider_id):
        user = await super().find_by_provider_identity(provider, provider_id)
        await asyncio.sleep(0)
        return user


class RivalClaimIdentityRepository(InMemoryUserIdentityRepository):
    """Lets a rival account claim a credential just before our insert."""

    def __init__(self, db, rival_id: UserId) -> None:
        super().__init__(db)
        self.rival_id = rival_id

    async def insert(self, identity: UserIdentity) -> UserIdentity:
        if identity.user_id != self.rival_id:
            self._db.identities.append(
                identity.model_copy(
                    update={"id": UserIdentityId(uuid4()), "user_id": self.rival_id}
                )
            )
        return await super().insert(identity)


class AlwaysConflictingUserRepository(InMemoryUserRepository):
    """Every create loses a race that never becomes visible."""

    async def create_with_identity(self, user, identity):
        raise IntegrityError("duplicate key", None, Exception())


class TestConsolidateOnLogin:
    """Tests for IdentityConsolidationService.consolidate_on_login()."""

    @pytest.mark.asyncio
    async def test_first_login_creates_account(self, db, consolidation):
        user = await consolidation.consolidate_on_login(
            AuthProvider.GOOGLE,
            "g-1",
            LoginProfile(email="asha@example.com", name="Asha Rao"),
        )

        assert user.full_name == "Asha Rao"
        assert user.email == "asha@example.com"
        assert user.primary_auth_provider == "google"
        assert user.auth_providers == ["google"]
        assert user.login_count == 1
        assert len(db.identities) == 1
        identity = db.identities[0]
        assert identity.is_primary
        assert identity.is_verified
        assert identity.metadata["original_provider"] == "google"

    @pytest.mark.asyncio
    async def test_same_email_from_other_provider_links_to_one_account(
        self, db, consolidation
    ):
        first = await consolidation.consolidate_on_login(
            AuthProvider.GOOGLE, "g-1", LoginProfile(email="asha@example.com")
        )
        second = await consolidation.consolidate_on_login(
            AuthProvider.LINKEDIN, "li-1", LoginProfile(email="ASHA@example.com")
        )
        third = await consolidation.consolidate_on_login(
            AuthProvider.GOOGLE, "g-1", LoginProfile(email="asha@example.com")
        )

        assert first.id == second.id == third.id
        assert len(db.users) == 1
        assert sorted(third.auth_providers) == ["google", "linkedin"]

        linked = db.find_identity(AuthProvider.LINKEDIN, "li-1")
        assert not linked.is_primary
        assert linked.metadata["linked_via"] == "email"
        assert "linked_at" in linked.metadata

    @pytest.mark.asyncio
    async def test_email_link_fills_only_blank_fields(self, db, consolidation):
        existing = seed_user(
            db,
            (AuthProvider.PASSWORD, "asha@example.com"),
            email="asha@example.com",
            full_name="Unknown User",
            city="Kochi",
        )

        user = await consolidation.consolidate_on_login(
            AuthProvider.LINKEDIN,
            "li-1",
            LoginProfile(
                email="asha@example.com",
                name="Asha Rao",
                avatar_url="https://img/asha.png",
            ),
        )

        assert user.id == existing.id
        assert user.full_name == "Asha Rao"
        assert user.avatar_url == "https://img/asha.png"
        assert user.city == "Kochi"

    @pytest.mark.asyncio
    async def test_email_link_targets_email_owner_not_provider_id_owner(
        self, db, consolidation
    ):
        seed_user(
            db, (AuthProvider.PASSWORD, "asha@example.com"), email="other@example.com"
        )
        owner = seed_user(db, (AuthProvider.GOOGLE, "g-1"), email="asha@example.com")

        user = await consolidation.consolidate_on_login(
            AuthProvider.LINKEDIN, "li-1", LoginProfile(email="asha@example.com")
        )

        assert user.id == owner.id
        assert db.find_identity(AuthProvider.LINKEDIN, "li-1").user_id == owner.id

    @pytest.mark.asyncio
    async def test_email_link_keeps_real_name(self, db, consolidation):
        seed_user(db, email="asha@example.com", full_name="Capt. Asha Rao")

        user = await consolidation.consolidate_on_login(
            AuthProvider.GOOGLE,
            "g-1",
            LoginProfile(email="asha@example.com", name="asha"),
        )

        assert user.full_name == "Capt. Asha Rao"

    @pytest.mark.asyncio
    async def test_name_falls_back_to_provider_id_suffix(self, consolidation):
        user = await consolidation.consolidate_on_login(
            AuthProvider.WHATSAPP, "919876543210"
        )

        assert user.full_name == "User 3210"

    @pytest.mark.asyncio
    async def test_unverified_provider(self, db, consolidation):
        await consolidation.consolidate_on_login(AuthProvider.WHATSAPP, "919876543210")

        assert not db.identities[0].is_verified

    @pytest.mark.asyncio
    async def test_unverified_provider_never_claims_account_by_email(
        self, db, consolidation
    ):
        victim = seed_user(
            db, (AuthProvider.GOOGLE, "g-1"), email="asha@example.com"
        )

        user = await consolidation.consolidate_on_login(
            AuthProvider.PASSWORD,
            "attacker-chosen",
            LoginProfile(email="asha@example.com"),
        )

        assert user.id != victim.id
        assert len(db.users) == 2
        assert db.find_identity(AuthProvider.PASSWORD, "attacker-chosen").user_id == (
            user.id
        )
        assert [i.provider for i in db.identities if i.user_id == victim.id] == [
            AuthProvider.GOOGLE
        ]

    @pytest.mark.asyncio
    async def test_returning_login_bumps_counters_after_interval(
        self, db, consolidation
    ):
        user = seed_user(
            db,
            (AuthProvider.GOOGLE, "g-1"),
            login_count=3,
            last_login=utcnow() - timedelta(days=2),
        )

        returned = await consolidation.consolidate_on_login(AuthProvider.GOOGLE, "g-1")

        assert returned.id == user.id
        assert returned.login_count == 4

    @pytest.mark.asyncio
    async def test_returning_login_within_interval_does_not_bump(
        self, db, consolidation
    ):
        seed_user(
            db,
            (AuthProvider.GOOGLE, "g-1"),
            login_count=3,
            last_login=utcnow() - timedelta(minutes=5),
        )

        returned = await consolidation.consolidate_on_login(AuthProvider.GOOGLE, "g-1")

        assert returned.login_count == 3

    @pytest.mark.asyncio
    async def test_parallel_first_logins_converge(self, db):
        service = build_service(
            InterleavingUserRepository(db), InMemoryUserIdentityRepository(db)
        )

        users = await asyncio.gather(
            *[
                service.consolidate_on_login(
                    AuthProvider.GOOGLE, "g-1", LoginProfile(name="Asha")
                )
                for _ in range(5)
            ]
        )

        assert len({u.id for u in users}) == 1
        assert len(db.users) == 1
        assert len(db.identities) == 1

    @pytest.mark.asyncio
    async def test_credential_claimed_by_another_account_during_email_link(self, db):
        target = seed_user(db, email="asha@example.com")
        rival = seed_user(db)
        service = build_service(
            InMemoryUserRepository(db), RivalClaimIdentityRepository(db, rival.id)
        )

        with pytest.raises(IdentityConflictError) as exc_info:
            await service.consolidate_on_login(
                AuthProvider.LINKEDIN, "li-1", LoginProfile(email="asha@example.com")
            )

        assert exc_info.value.code == "identity_conflict"
        assert exc_info.value.owner_user_id == str(rival.id)
        assert exc_info.value.requested_user_id == str(target.id)
        # The rival keeps the credential; nothing is half-linked to the target
        assert db.find_identity(AuthProvider.LINKEDIN, "li-1").user_id == rival.id

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, db):
        service = build_service(
            AlwaysConflictingUserRepository(db),
            InMemoryUserIdentityRepository(db),
            IdentitySettings(max_consolidation_attempts=2),
        )

        with pytest.raises(IntegrityError):
            await service.consolidate_on_login(AuthProvider.GOOGLE, "g-1")


class TestLinkIdentity:
    """Tests for IdentityConsolidationService.link_identity()."""

    @pytest.mark.asyncio
    async def test_link_adds_non_primary_identity(self, db, consolidation):
        user = seed_user(db, (AuthProvider.GOOGLE, "g-1"), auth_providers=["google"])

        identity = await consolidation.link_identity(
            user.id,
            LinkIdentityRequest(provider=AuthProvider.WHATSAPP, provider_id="919876543210"),
        )

        assert identity.user_id == user.id
        assert not identity.is_primary
        assert not identity.is_verified
        stored = await consolidation.user_repository.find_by_id(user.id)
        assert stored.auth_providers == ["google", "whatsapp"]

    @pytest.mark.asyncio
    async def test_link_verification_follows_provider(self, db, consolidation):
        user = seed_user(db, (AuthProvider.WHATSAPP, "919876543210"))

        identity = await consolidation.link_identity(
            user.id,
            LinkIdentityRequest(provider=AuthProvider.LINKEDIN, provider_id="li-1"),
        )

        assert identity.is_verified

    @pytest.mark.asyncio
    async def test_first_link_is_primary(self, db, consolidation):
        user = seed_user(db)

        identity = await consolidation.link_identity(
            user.id, LinkIdentityRequest(provider=AuthProvider.GOOGLE, provider_id="g-1")
        )

        assert identity.is_primary
        stored = await consolidation.user_repository.find_by_id(user.id)
        assert stored.primary_auth_provider == "google"

    @pytest.mark.asyncio
    async def test_link_is_idempotent(self, db, consolidation):
        user = seed_user(db, (AuthProvider.GOOGLE, "g-1"))
        request = LinkIdentityRequest(provider=AuthProvider.LINKEDIN, provider_id="li-1")

        first = await consolidation.link_identity(user.id, request)
        second = await consolidation.link_identity(user.id, request)

        assert first.id == second.id
        assert len(db.identities) == 2

    @pytest.mark.asyncio
    async def test_link_refused_when_owned_by_other_user(self, db, consolidation):
        owner = seed_user(db, (AuthProvider.LINKEDIN, "li-1"))
        other = seed_user(db, (AuthProvider.GOOGLE, "g-2"))

        with pytest.raises(AlreadyLinkedError) as exc_info:
            await consolidation.link_identity(
                other.id,
                LinkIdentityRequest(provider=AuthProvider.LINKEDIN, provider_id="li-1"),
            )

        assert exc_info.value.code == "already_linked"
        assert exc_info.value.owner_user_id == str(owner.id)

    @pytest.mark.asyncio
    async def test_link_to_unknown_user(self, consolidation):
        with pytest.raises(NotFoundError):
            await consolidation.link_identity(
                UserId(uuid4()),
                LinkIdentityRequest(provider=AuthProvider.GOOGLE, provider_id="g-1"),
            )


class TestUnlinkIdentity:
    """Tests for IdentityConsolidationService.unlink_identity()."""

    @pytest.mark.asyncio
    async def test_last_identity_cannot_be_unlinked(self, db, consolidation):
        user = seed_user(db, (AuthProvider.GOOGLE, "g-1"))

        with pytest.raises(LastIdentityError):
            await consolidation.unlink_identity(user.id, AuthProvider.GOOGLE)

        assert len(db.identities) == 1

    @pytest.mark.asyncio
    async def test_unlinking_primary_promotes_oldest_remaining(self, db, consolidation):
        user = seed_user(
            db,
            (AuthProvider.GOOGLE, "g-1"),
            (AuthProvider.LINKEDIN, "li-1"),
            (AuthProvider.WHATSAPP, "919876543210"),
            auth_providers=["google", "linkedin", "whatsapp"],
        )

        await consolidation.unlink_identity(user.id, AuthProvider.GOOGLE)

        remaining = await consolidation.user_identity_repository.find_all_by_user_id(
            user.id
        )
        assert [(i.provider, i.is_primary) for i in remaining] == [
            (AuthProvider.LINKEDIN, True),
            (AuthProvider.WHATSAPP, False),
        ]
        stored = await consolidation.user_repository.find_by_id(user.id)
        assert stored.primary_auth_provider == "linkedin"
        assert stored.auth_providers == ["linkedin", "whatsapp"]

    @pytest.mark.asyncio
    async def test_unlinked_provider_id_no_longer_resolves(
        self, db, consolidation, resolver
    ):
        user = seed_user(
            db, (AuthProvider.GOOGLE, "g-1"), (AuthProvider.LINKEDIN, "li-1")
        )
        assert (await resolver.resolve("li-1")).id == user.id

        await consolidation.unlink_identity(user.id, AuthProvider.LINKEDIN)

        assert await resolver.resolve("li-1") is None

    @pytest.mark.asyncio
    async def test_unlink_provider_not_linked(self, db, consolidation):
        user = seed_user(db, (AuthProvider.GOOGLE, "g-1"))

        with pytest.raises(NotFoundError):
            await consolidation.unlink_identity(user.id, AuthProvider.APPLE)


class TestSetPrimaryIdentity:
    """Tests for IdentityConsolidationService.set_primary_identity()."""

    @pytest.mark.asyncio
    async def test_exactly_one_primary_after_switch(self, db, consolidation):
        user = seed_user(
            db, (AuthProvider.GOOGLE, "g-1"), (AuthProvider.LINKEDIN, "li-1")
        )
        linkedin = db.find_identity(AuthProvider.LINKEDIN, "li-1")

        result = await consolidation.set_primary_identity(user.id, linkedin.id)

        assert result.is_primary
        identities = await consolidation.user_identity_repository.find_all_by_user_id(
            user.id
        )
        assert [i.provider for i in identities if i.is_primary] == [
            AuthProvider.LINKEDIN
        ]
        stored = await consolidation.user_repository.find_by_id(user.id)
        assert stored.primary_auth_provider == "linkedin"

    @pytest.mark.asyncio
    async def test_cannot_promote_another_users_identity(self, db, consolidation):
        user = seed_user(db, (AuthProvider.GOOGLE, "g-1"))
        seed_user(db, (AuthProvider.LINKEDIN, "li-2"))
        foreign = db.find_identity(AuthProvider.LINKEDIN, "li-2")

        with pytest.raises(NotFoundError):
            await consolidation.set_primary_identity(user.id, foreign.id)


class TestEnsureIdentity:
    """Tests for IdentityConsolidationService.ensure_identity()."""

    @pytest.mark.asyncio
    async def test_backfills_missing_identity(self, db, consolidation):
        user = seed_user(db, email="asha@example.com")

        identity = await consolidation.ensure_identity(user, AuthProvider.REPLIT, "r-77")

        assert identity.user_id == user.id
        assert identity.metadata["auto_created"] is True
        assert identity.is_verified

    @pytest.mark.asyncio
    async def test_backfill_verification_follows_provider(self, db, consolidation):
        user = seed_user(db, email="asha@example.com")

        identity = await consolidation.ensure_identity(
            user, AuthProvider.PASSWORD, "asha@example.com"
        )

        assert not identity.is_verified

    @pytest.mark.asyncio
    async def test_is_idempotent(self, db, consolidation):
        user = seed_user(db, (AuthProvider.PASSWORD, "asha@example.com"))

        first = await consolidation.ensure_identity(
            user, AuthProvider.PASSWORD, "asha@example.com"
        )
        second = await consolidation.ensure_identity(
            user, AuthProvider.PASSWORD, "asha@example.com"
        )

        assert first.id == second.id
        assert len(db.identities) == 1

    @pytest.mark.asyncio
    async def test_conflict_with_other_owner(self, db, consolidation):
        seed_user(db, (AuthProvider.PASSWORD, "asha@example.com"))
        other = seed_user(db)

        with pytest.raises(IdentityConflictError):
            await consolidation.ensure_identity(
                other, AuthProvider.PASSWORD, "asha@example.com"
            )
