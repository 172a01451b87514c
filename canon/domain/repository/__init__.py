"""Repository interfaces for identity persistence."""

from canon.domain.repository.user import UserRepository
from canon.domain.repository.user_identity import UserIdentityRepository

__all__ = [
    "UserRepository",
    "UserIdentityRepository",
]
