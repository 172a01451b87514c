"""Domain services."""

from .base import Service
from .cache_invalidation import invalidate_user_aliases
from .identity_consolidation import ConsolidationState, IdentityConsolidationService
from .identity_resolver import IdentityResolver
from .jwt_service import JWTService
from .user_service import DuplicateGroup, UserService

__all__ = [
    "ConsolidationState",
    "DuplicateGroup",
    "IdentityConsolidationService",
    "IdentityResolver",
    "JWTService",
    "Service",
    "UserService",
    "invalidate_user_aliases",
]
