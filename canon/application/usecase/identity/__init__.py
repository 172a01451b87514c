"""Identity management use cases."""

from .link_identity import LinkIdentityUseCase
from .list_identities import ListIdentitiesUseCase
from .set_primary_identity import SetPrimaryIdentityUseCase
from .unlink_identity import UnlinkIdentityUseCase

__all__ = [
    "LinkIdentityUseCase",
    "ListIdentitiesUseCase",
    "SetPrimaryIdentityUseCase",
    "UnlinkIdentityUseCase",
]
