"""PostgreSQL repository implementations."""

from canon.persistence.repository.user import PostgresUserRepository
from canon.persistence.repository.user_identity import PostgresUserIdentityRepository

__all__ = [
    "PostgresUserRepository",
    "PostgresUserIdentityRepository",
]
