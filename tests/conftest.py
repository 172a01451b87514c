"""Test configuration and fixtures."""

from datetime import datetime, timedelta
from typing import Any
from uuid import uuid4

import logfire
import pytest

from canon.config import AuthSettings, IdentitySettings, RateLimitSettings, Settings
from canon.domain.model import User, UserIdentity
from canon.domain.model.common import utcnow
from canon.domain.service import (
    IdentityConsolidationService,
    IdentityResolver,
    UserService,
)
from canon.domain.value import AuthProvider, UserId, UserIdentityId
from canon.persistence.repository.inmemory import (
    InMemoryDatabase,
    InMemoryUserIdentityRepository,
    InMemoryUserRepository,
)
from canon.util.cache import CredentialCache, DeferredInvalidations

# Keep telemetry local during tests
logfire.configure(send_to_logfire=False, console=False)

COLLABORATOR_SECRET = "test-collaborator-secret"
COLLABORATOR_HEADERS = {"X-Collaborator-Token": COLLABORATOR_SECRET}


def api_settings(rate_limit: RateLimitSettings | None = None) -> Settings:
    """Settings for API tests: a known collaborator secret, limits off."""
    return Settings(
        environment="test",
        auth=AuthSettings(collaborator_secret=COLLABORATOR_SECRET),
        rate_limit=rate_limit or RateLimitSettings(enabled=False),
    )


def seed_user(
    db: InMemoryDatabase,
    *identities: tuple[AuthProvider, str],
    created_at: datetime | None = None,
    **fields: Any,
) -> User:
    """Insert a user (and optional identities) straight into the store.

    The first identity is primary. Bypasses services so tests can set up
    states the services would never produce themselves.
    """
    created_at = created_at or utcnow() - timedelta(days=30)
    user = User(id=UserId(uuid4()), created_at=created_at, updated_at=created_at, **fields)
    db.users[user.id] = user.model_dump()
    for index, (provider, provider_id) in enumerate(identities):
        db.identities.append(
            UserIdentity(
                id=UserIdentityId(uuid4()),
                user_id=user.id,
                provider=provider,
                provider_id=provider_id,
                is_primary=index == 0,
                created_at=created_at + timedelta(minutes=index),
                updated_at=created_at + timedelta(minutes=index),
            )
        )
    return user


@pytest.fixture
def db() -> InMemoryDatabase:
    return InMemoryDatabase()


@pytest.fixture
def user_repo(db: InMemoryDatabase) -> InMemoryUserRepository:
    return InMemoryUserRepository(db)


@pytest.fixture
def identity_repo(db: InMemoryDatabase) -> InMemoryUserIdentityRepository:
    return InMemoryUserIdentityRepository(db)


@pytest.fixture
def cache() -> CredentialCache:
    return CredentialCache(ttl_seconds=300, max_entries=100)


@pytest.fixture
def invalidations(cache: CredentialCache) -> DeferredInvalidations:
    return DeferredInvalidations(cache)


@pytest.fixture
def identity_settings() -> IdentitySettings:
    return IdentitySettings()


@pytest.fixture
def resolver(user_repo, identity_repo, cache, identity_settings) -> IdentityResolver:
    return IdentityResolver(user_repo, identity_repo, cache, identity_settings)


@pytest.fixture
def consolidation(
    user_repo, identity_repo, resolver, invalidations, identity_settings
) -> IdentityConsolidationService:
    return IdentityConsolidationService(
        user_repo, identity_repo, resolver, invalidations, identity_settings
    )


@pytest.fixture
def user_service(user_repo, identity_repo, invalidations) -> UserService:
    return UserService(user_repo, identity_repo, invalidations)
