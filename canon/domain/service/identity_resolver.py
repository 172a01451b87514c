"""Canonical identity resolution.

Every authentication path resolves through here so that any identifier a
user is known by (id, provider id, email, phone) lands on the same account.
"""

from typing import Optional
from uuid import UUID

import logfire

from canon.config import IdentitySettings
from canon.domain.model import User, UserWithIdentities
from canon.domain.repository import UserIdentityRepository, UserRepository
from canon.domain.value import (
    AuthProvider,
    UserId,
    is_email,
    is_phone,
    normalize_email,
    phone_variants,
)
from canon.util.cache import CredentialCache

from .base import Service


def _as_uuid(identifier: str) -> Optional[UUID]:
    try:
        return UUID(identifier)
    except ValueError:
        return None


class IdentityResolver(Service):
    """Read-only resolver from any identifier to a canonical user.

    Lookup order, first hit wins:

    1. primary key (only when the identifier is a UUID)
    2. provider id, across every provider (primary identities first)
    3. email, when the identifier is an email address
    4. phone, when the identifier is a phone number, trying stored spellings

    Hits are cached under the identifier that was asked for.
    """

    def __init__(
        self,
        user_repository: UserRepository,
        user_identity_repository: UserIdentityRepository,
        cache: CredentialCache,
        identity_settings: IdentitySettings,
    ) -> None:
        """Initialize identity resolver.

        Args:
            user_repository: User repository
            user_identity_repository: User identity repository
            cache: Process-wide credential cache
            identity_settings: Identity resolution settings
        """
        self.user_repository = user_repository
        self.user_identity_repository = user_identity_repository
        self.cache = cache
        self.identity_settings = identity_settings

    async def resolve(self, identifier: str | None) -> Optional[User]:
        """Resolve any identifier to its canonical user.

        Args:
            identifier: User id, provider id, email or phone number

        Returns:
            The user, or None when nothing matches

        Raises:
            TransientStoreError: If the store is unavailable
        """
        if identifier is None:
            return None
        identifier = identifier.strip()
        if not identifier:
            return None

        cached = self.cache.get(identifier)
        if cached is not None:
            return cached

        with logfire.span("identity_resolver.resolve", identifier=identifier):
            user, strategy = await self._lookup(identifier)
            if user is None:
                logfire.info("Identifier did not resolve", identifier=identifier)
                return None

            logfire.info(
                "Identifier resolved",
                identifier=identifier,
                user_id=str(user.id),
                strategy=strategy,
            )
            self.cache.put(identifier, user)
            return user

    async def _lookup(self, identifier: str) -> tuple[Optional[User], str]:
        as_uuid = _as_uuid(identifier)
        if as_uuid is not None:
            user = await self.user_repository.find_by_id(UserId(as_uuid))
            if user is not None:
                return user, "primary_key"

        user = await self.user_repository.find_by_any_provider_id(identifier)
        if user is not None:
            return user, "provider_id"

        if is_email(identifier):
            user = await self.user_repository.find_by_email(normalize_email(identifier))
            if user is not None:
                return user, "email"

        if is_phone(identifier):
            for variant in phone_variants(
                identifier, self.identity_settings.default_country_code
            ):
                user = await self.user_repository.find_by_phone(variant)
                if user is not None:
                    return user, "phone"

        return None, "none"

    async def get_by_provider(
        self, provider: AuthProvider, provider_id: str
    ) -> Optional[User]:
        """Find the owner of one provider credential, bypassing the cache.

        Args:
            provider: Authentication provider
            provider_id: The user's ID on that provider

        Returns:
            The owning user, or None if the credential is unknown
        """
        with logfire.span(
            "identity_resolver.get_by_provider",
            provider=provider.value,
            provider_id=provider_id,
        ):
            return await self.user_repository.find_by_provider_identity(
                provider, provider_id
            )

    async def get_user_with_identities(
        self, identifier: str | None
    ) -> Optional[UserWithIdentities]:
        """Resolve a user and load every linked identity.

        Args:
            identifier: Any identifier accepted by ``resolve``

        Returns:
            The user and its identities (primary first), or None
        """
        user = await self.resolve(identifier)
        if user is None:
            return None
        identities = await self.user_identity_repository.find_all_by_user_id(user.id)
        return UserWithIdentities(user=user, identities=identities)
