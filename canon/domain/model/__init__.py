"""Domain model entities for identity resolution."""

from canon.domain.model.auth_context import AuthContext
from canon.domain.model.user import User
from canon.domain.model.user_identity import UserIdentity, UserWithIdentities

__all__ = [
    "AuthContext",
    "User",
    "UserIdentity",
    "UserWithIdentities",
]
