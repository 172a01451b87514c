"""Alias-wide cache invalidation after user or identity mutations."""

from collections.abc import Iterable

from canon.domain.model import User
from canon.domain.repository import UserIdentityRepository
from canon.util.cache import DeferredInvalidations


async def invalidate_user_aliases(
    invalidations: DeferredInvalidations,
    user_identity_repository: UserIdentityRepository,
    *snapshots: User,
    extra: Iterable[str] = (),
) -> int:
    """Drop every cache key a user may be cached under.

    Pass the user as it was before and after the mutation so both old and
    new email/phone values are covered. Provider ids of every currently
    linked identity are included; removed ones must be passed in ``extra``.
    The same keys are dropped again when the request's transaction ends.

    Args:
        invalidations: Request-scoped invalidation collector
        user_identity_repository: Source of linked provider ids
        snapshots: Versions of the same user (before and after)
        extra: Additional identifiers to drop

    Returns:
        Number of cache entries removed now
    """
    if not snapshots:
        return 0

    user_id = snapshots[0].id
    aliases = set(extra)
    for snapshot in snapshots:
        aliases |= snapshot.aliases()

    identities = await user_identity_repository.find_all_by_user_id(user_id)
    aliases |= {identity.provider_id for identity in identities}

    return invalidations.invalidate_user(user_id, aliases)
