"""Mappers for converting between database rows and domain models.

Rows from the shared ``users`` table may lack columns; absent or NULL
values fall back to the model defaults.
"""

from typing import Any, Dict, Mapping
from uuid import UUID

from canon.domain.model import User, UserIdentity
from canon.domain.value import AuthProvider, UserId, UserIdentityId

_USER_FIELDS = set(User.model_fields)


def _uuid(value: Any) -> UUID:
    return UUID(value) if isinstance(value, str) else value


def row_to_user(row: Mapping[str, Any]) -> User:
    """Convert database row to User domain model.

    Args:
        row: Database row as mapping (may be narrower or wider than the model)

    Returns:
        User domain model
    """
    data = {
        key: value
        for key, value in row.items()
        if key in _USER_FIELDS and value is not None
    }
    data["id"] = UserId(_uuid(row["id"]))
    return User(**data)


def user_to_dict(user: User) -> Dict[str, Any]:
    """Convert User domain model to database dict.

    Args:
        user: User domain model

    Returns:
        Dict suitable for database insertion/update
    """
    return user.model_dump()


def row_to_user_identity(row: Mapping[str, Any]) -> UserIdentity:
    """Convert database row to UserIdentity domain model.

    Args:
        row: Database row as mapping

    Returns:
        UserIdentity domain model
    """
    optional = {
        key: row[key]
        for key in ("created_at", "updated_at")
        if row.get(key) is not None
    }
    return UserIdentity(
        id=UserIdentityId(_uuid(row["id"])),
        user_id=UserId(_uuid(row["user_id"])),
        provider=AuthProvider(row["provider"]),
        provider_id=row["provider_id"],
        is_primary=bool(row.get("is_primary")),
        is_verified=bool(row.get("is_verified")),
        metadata=row.get("metadata") or {},
        **optional,
    )


def user_identity_to_dict(identity: UserIdentity) -> Dict[str, Any]:
    """Convert UserIdentity domain model to database dict.

    Args:
        identity: UserIdentity domain model

    Returns:
        Dict suitable for database insertion/update
    """
    data = identity.model_dump()
    data["provider"] = identity.provider.value
    return data
