"""Login-time identity consolidation.

Every login resolves to exactly one canonical user: by the credential
itself, else by the profile's email when the provider verified it, else by
creating a new account. The store's unique constraint on (provider,
provider_id) settles races; the losing writer re-resolves instead of
failing the login or creating a second account.
"""

from datetime import timedelta
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

import logfire
from sqlalchemy.exc import IntegrityError

from canon.config import IdentitySettings
from canon.domain.error import (
    AlreadyLinkedError,
    IdentityConflictError,
    LastIdentityError,
    NotFoundError,
)
from canon.domain.model import User, UserIdentity
from canon.domain.model.common import utcnow
from canon.domain.repository import UserIdentityRepository, UserRepository
from canon.domain.value import (
    AuthProvider,
    LinkIdentityRequest,
    LoginProfile,
    UserId,
    UserIdentityId,
    normalize_email,
)
from canon.util.cache import DeferredInvalidations

from .base import Service
from .cache_invalidation import invalidate_user_aliases
from .identity_resolver import IdentityResolver

# Placeholder stored by other applications for users without a name
PLACEHOLDER_NAMES = frozenset({"", "Unknown User"})


class ConsolidationState(str, Enum):
    """Steps of the login consolidation state machine."""

    RESOLVE_BY_PROVIDER = "resolve_by_provider"
    RESOLVE_BY_EMAIL = "resolve_by_email"
    CREATE = "create"


class _AnyOwner:
    """Marker: after losing a create race, whoever won is the right owner."""


ANY_OWNER = _AnyOwner()


class IdentityConsolidationService(Service):
    """Resolve-or-link-or-create on login, plus explicit identity management.

    This service is the only writer of identity rows.
    """

    def __init__(
        self,
        user_repository: UserRepository,
        user_identity_repository: UserIdentityRepository,
        identity_resolver: IdentityResolver,
        invalidations: DeferredInvalidations,
        identity_settings: IdentitySettings,
    ) -> None:
        """Initialize consolidation service.

        Args:
            user_repository: User repository
            user_identity_repository: User identity repository
            identity_resolver: Canonical identity resolver
            invalidations: Request-scoped cache invalidation collector
            identity_settings: Identity resolution settings
        """
        self.user_repository = user_repository
        self.user_identity_repository = user_identity_repository
        self.identity_resolver = identity_resolver
        self.invalidations = invalidations
        self.identity_settings = identity_settings

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    async def consolidate_on_login(
        self,
        provider: AuthProvider,
        provider_id: str,
        profile: Optional[LoginProfile] = None,
    ) -> User:
        """Resolve a login event to its canonical user.

        Args:
            provider: Provider the user logged in with
            provider_id: The user's ID on that provider
            profile: Normalized profile from the provider

        Returns:
            The canonical user (existing, linked by email, or new)

        Raises:
            IdentityConflictError: If the credential was claimed by a
                different account while linking it
            IntegrityError: If writes keep violating constraints after
                the configured number of re-resolutions
        """
        profile = profile or LoginProfile()

        with logfire.span(
            "identity_consolidation.consolidate_on_login",
            provider=provider.value,
            provider_id=provider_id,
        ):
            state = ConsolidationState.RESOLVE_BY_PROVIDER
            # Account the last failed write targeted; None until a race is lost
            expected_owner: UserId | _AnyOwner | None = None
            attempts = 0

            while True:
                if state is ConsolidationState.RESOLVE_BY_PROVIDER:
                    owner = await self.identity_resolver.get_by_provider(
                        provider, provider_id
                    )
                    if owner is not None:
                        if expected_owner is not None and not (
                            expected_owner is ANY_OWNER or expected_owner == owner.id
                        ):
                            logfire.warn(
                                "Identity claimed by another account during login",
                                provider=provider.value,
                                provider_id=provider_id,
                                owner_user_id=str(owner.id),
                                requested_user_id=str(expected_owner),
                            )
                            raise IdentityConflictError(
                                provider.value,
                                provider_id,
                                owner_user_id=str(owner.id),
                                requested_user_id=str(expected_owner),
                            )
                        return await self._record_login(owner)

                    # Only a provider that verified the address may claim
                    # an account by email
                    state = (
                        ConsolidationState.RESOLVE_BY_EMAIL
                        if profile.email and self._is_verified(provider)
                        else ConsolidationState.CREATE
                    )

                elif state is ConsolidationState.RESOLVE_BY_EMAIL:
                    target = await self.user_repository.find_by_email(
                        normalize_email(profile.email or "")
                    )
                    if target is None:
                        state = ConsolidationState.CREATE
                        continue
                    try:
                        return await self._link_on_login(
                            target, provider, provider_id, profile
                        )
                    except IntegrityError as e:
                        attempts = self._lost_race(e, attempts, provider, provider_id)
                        expected_owner = target.id
                        state = ConsolidationState.RESOLVE_BY_PROVIDER

                else:
                    try:
                        return await self._create(provider, provider_id, profile)
                    except IntegrityError as e:
                        attempts = self._lost_race(e, attempts, provider, provider_id)
                        expected_owner = ANY_OWNER
                        state = ConsolidationState.RESOLVE_BY_PROVIDER

    def _lost_race(
        self,
        error: IntegrityError,
        attempts: int,
        provider: AuthProvider,
        provider_id: str,
    ) -> int:
        attempts += 1
        logfire.info(
            "Uniqueness violation during login, re-resolving",
            provider=provider.value,
            provider_id=provider_id,
            attempt=attempts,
        )
        if attempts >= self.identity_settings.max_consolidation_attempts:
            logfire.error(
                "Login consolidation did not converge",
                provider=provider.value,
                provider_id=provider_id,
                attempts=attempts,
            )
            raise error
        return attempts

    async def _record_login(self, user: User) -> User:
        """Bump login counters when the previous login is old enough."""
        interval = timedelta(seconds=self.identity_settings.login_bump_interval_seconds)
        bumped = await self.user_repository.touch_login(user.id, utcnow(), interval)
        if not bumped:
            return user

        await invalidate_user_aliases(
            self.invalidations, self.user_identity_repository, user
        )
        refreshed = await self.user_repository.find_by_id(user.id)
        return refreshed if refreshed is not None else user

    async def _link_on_login(
        self,
        user: User,
        provider: AuthProvider,
        provider_id: str,
        profile: LoginProfile,
    ) -> User:
        identity = UserIdentity(
            id=UserIdentityId(uuid4()),
            user_id=user.id,
            provider=provider,
            provider_id=provider_id,
            is_primary=False,
            is_verified=self._is_verified(provider),
            metadata={
                **profile.as_metadata(),
                "linked_via": "email",
                "linked_at": utcnow().isoformat(),
            },
        )
        await self.user_identity_repository.insert(identity)

        changes = self._fill_blanks(user, profile)
        if provider.value not in user.auth_providers:
            changes["auth_providers"] = [*user.auth_providers, provider.value]

        updated = user
        if changes:
            updated = await self.user_repository.update(user.id, changes) or user

        logfire.info(
            "Identity linked to existing account by email",
            user_id=str(user.id),
            provider=provider.value,
            provider_id=provider_id,
            filled=sorted(changes),
        )
        await invalidate_user_aliases(
            self.invalidations, self.user_identity_repository, user, updated
        )
        return await self._record_login(updated)

    async def _create(
        self, provider: AuthProvider, provider_id: str, profile: LoginProfile
    ) -> User:
        now = utcnow()
        user_id = UserId(uuid4())
        user = User(
            id=user_id,
            full_name=self._initial_name(provider_id, profile),
            email=profile.email,
            phone=profile.phone,
            avatar_url=profile.avatar_url,
            primary_auth_provider=provider.value,
            auth_providers=[provider.value],
            login_count=1,
            last_login=now,
            created_at=now,
            updated_at=now,
        )
        identity = UserIdentity(
            id=UserIdentityId(uuid4()),
            user_id=user_id,
            provider=provider,
            provider_id=provider_id,
            is_primary=True,
            is_verified=self._is_verified(provider),
            metadata={**profile.as_metadata(), "original_provider": provider.value},
            created_at=now,
            updated_at=now,
        )

        created = await self.user_repository.create_with_identity(user, identity)
        logfire.info(
            "Account created on first login",
            user_id=str(created.id),
            provider=provider.value,
            provider_id=provider_id,
        )
        await invalidate_user_aliases(
            self.invalidations, self.user_identity_repository, created
        )
        return created

    def _is_verified(self, provider: AuthProvider) -> bool:
        return provider.value in self.identity_settings.verified_providers

    @staticmethod
    def _initial_name(provider_id: str, profile: LoginProfile) -> str:
        return profile.full_name() or profile.email or f"User {provider_id[-4:]}"

    @staticmethod
    def _fill_blanks(user: User, profile: LoginProfile) -> dict[str, Any]:
        """Profile values for fields the account does not have yet."""
        changes: dict[str, Any] = {}
        name = profile.full_name()
        if name and (user.full_name or "").strip() in PLACEHOLDER_NAMES:
            changes["full_name"] = name
        if profile.avatar_url and not user.avatar_url:
            changes["avatar_url"] = profile.avatar_url
        if profile.phone and not user.phone:
            changes["phone"] = profile.phone
        return changes

    # ------------------------------------------------------------------
    # Explicit identity management
    # ------------------------------------------------------------------

    async def link_identity(
        self, user_id: UserId, request: LinkIdentityRequest
    ) -> UserIdentity:
        """Bind a credential to an existing user.

        Repeating the call for the same user returns the existing identity.

        Args:
            user_id: User to link to
            request: Credential to link

        Returns:
            The linked identity

        Raises:
            NotFoundError: If the user does not exist
            AlreadyLinkedError: If the credential belongs to another user
        """
        with logfire.span(
            "identity_consolidation.link_identity",
            user_id=str(user_id),
            provider=request.provider.value,
        ):
            user = await self._get_user(user_id)

            existing = await self._existing_link(user_id, request)
            if existing is not None:
                return existing

            siblings = await self.user_identity_repository.find_all_by_user_id(user_id)
            identity = UserIdentity(
                id=UserIdentityId(uuid4()),
                user_id=user_id,
                provider=request.provider,
                provider_id=request.provider_id,
                is_primary=not siblings,
                is_verified=self._is_verified(request.provider),
                metadata=request.metadata,
            )
            try:
                await self.user_identity_repository.insert(identity)
            except IntegrityError:
                # Linked concurrently; the winner decides the outcome
                existing = await self._existing_link(user_id, request)
                if existing is None:
                    raise
                return existing

            changes: dict[str, Any] = {}
            if request.provider.value not in user.auth_providers:
                changes["auth_providers"] = [*user.auth_providers, request.provider.value]
            if identity.is_primary:
                changes["primary_auth_provider"] = request.provider.value
            updated = user
            if changes:
                updated = await self.user_repository.update(user_id, changes) or user

            logfire.info(
                "Identity linked",
                user_id=str(user_id),
                provider=request.provider.value,
                is_primary=identity.is_primary,
            )
            await invalidate_user_aliases(
                self.invalidations, self.user_identity_repository, user, updated
            )
            return identity

    async def _existing_link(
        self, user_id: UserId, request: LinkIdentityRequest
    ) -> Optional[UserIdentity]:
        existing = await self.user_identity_repository.find_by_provider(
            request.provider, request.provider_id
        )
        if existing is None:
            return None
        if existing.user_id != user_id:
            logfire.warn(
                "Link refused, identity belongs to another user",
                provider=request.provider.value,
                owner_user_id=str(existing.user_id),
                requested_user_id=str(user_id),
            )
            raise AlreadyLinkedError(
                request.provider.value,
                request.provider_id,
                owner_user_id=str(existing.user_id),
                requested_user_id=str(user_id),
            )
        return existing

    async def unlink_identity(self, user_id: UserId, provider: AuthProvider) -> None:
        """Remove a provider's identity from a user.

        When the removed identity was primary, the oldest remaining identity
        becomes primary.

        Raises:
            NotFoundError: If the user or the linked provider does not exist
            LastIdentityError: If it is the user's only identity
        """
        with logfire.span(
            "identity_consolidation.unlink_identity",
            user_id=str(user_id),
            provider=provider.value,
        ):
            user = await self._get_user(user_id)
            identities = await self.user_identity_repository.find_all_by_user_id(
                user_id
            )
            if not any(i.provider == provider for i in identities):
                raise NotFoundError("Identity", f"{user_id}:{provider.value}")

            remaining = [i for i in identities if i.provider != provider]
            if not remaining:
                logfire.warn(
                    "Refusing to unlink last identity",
                    user_id=str(user_id),
                    provider=provider.value,
                )
                raise LastIdentityError(str(user_id), provider.value)

            removed = await self.user_identity_repository.delete_by_user_and_provider(
                user_id, provider
            )

            changes: dict[str, Any] = {
                "auth_providers": [p for p in user.auth_providers if p != provider.value]
            }
            if any(i.is_primary for i in removed):
                promoted = min(remaining, key=lambda i: i.created_at)
                await self.user_identity_repository.set_primary(user_id, promoted.id)
                changes["primary_auth_provider"] = promoted.provider.value
                logfire.info(
                    "Primary identity promoted after unlink",
                    user_id=str(user_id),
                    provider=promoted.provider.value,
                )
            updated = await self.user_repository.update(user_id, changes) or user

            logfire.info(
                "Identity unlinked",
                user_id=str(user_id),
                provider=provider.value,
                removed=len(removed),
            )
            await invalidate_user_aliases(
                self.invalidations,
                self.user_identity_repository,
                user,
                updated,
                extra=[i.provider_id for i in removed],
            )

    async def set_primary_identity(
        self, user_id: UserId, identity_id: UserIdentityId
    ) -> UserIdentity:
        """Make one identity the user's primary, demoting the others.

        Raises:
            NotFoundError: If the user does not own the identity
        """
        with logfire.span(
            "identity_consolidation.set_primary_identity",
            user_id=str(user_id),
            identity_id=str(identity_id),
        ):
            user = await self._get_user(user_id)
            identity = await self.user_identity_repository.find_by_id(identity_id)
            if identity is None or identity.user_id != user_id:
                raise NotFoundError("Identity", str(identity_id))

            await self.user_identity_repository.set_primary(user_id, identity_id)
            updated = (
                await self.user_repository.update(
                    user_id, {"primary_auth_provider": identity.provider.value}
                )
                or user
            )

            logfire.info(
                "Primary identity set",
                user_id=str(user_id),
                provider=identity.provider.value,
            )
            await invalidate_user_aliases(
                self.invalidations, self.user_identity_repository, user, updated
            )
            return identity.model_copy(update={"is_primary": True})

    async def ensure_identity(
        self,
        user: User,
        provider: AuthProvider,
        provider_id: str,
    ) -> UserIdentity:
        """Backfill an identity for a user found through a legacy path.

        Idempotent for the same user.

        Raises:
            IdentityConflictError: If another user owns the credential
        """
        existing = await self.user_identity_repository.find_by_provider(
            provider, provider_id
        )
        if existing is not None:
            if existing.user_id == user.id:
                return existing
            raise IdentityConflictError(
                provider.value,
                provider_id,
                owner_user_id=str(existing.user_id),
                requested_user_id=str(user.id),
            )

        logfire.info(
            "Backfilling missing identity",
            user_id=str(user.id),
            provider=provider.value,
        )
        return await self.link_identity(
            user.id,
            LinkIdentityRequest(
                provider=provider,
                provider_id=provider_id,
                metadata={
                    "auto_created": True,
                    "created_at": utcnow().isoformat(),
                },
            ),
        )

    async def _get_user(self, user_id: UserId) -> User:
        user = await self.user_repository.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User", str(user_id))
        return user
