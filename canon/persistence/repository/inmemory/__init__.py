"""In-memory repository implementations for testing."""

from .store import InMemoryDatabase
from .user import InMemoryUserRepository
from .user_identity import InMemoryUserIdentityRepository

__all__ = [
    "InMemoryDatabase",
    "InMemoryUserRepository",
    "InMemoryUserIdentityRepository",
]
