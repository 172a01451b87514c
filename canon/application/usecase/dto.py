"""Response shapes shared by several use cases."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from canon.domain.model import User, UserIdentity
from canon.domain.value import AuthProvider


class UserInfo(BaseModel):
    """Public view of a canonical user."""

    user_id: str
    full_name: str
    email: str | None
    phone: str | None
    avatar_url: str | None
    rank: str | None
    city: str | None
    country: str | None
    is_admin: bool
    is_premium: bool
    primary_auth_provider: str | None
    auth_providers: list[str]
    login_count: int
    last_login: datetime | None
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserInfo":
        return cls(
            user_id=str(user.id),
            full_name=user.full_name,
            email=user.email,
            phone=user.phone,
            avatar_url=user.avatar_url,
            rank=user.rank,
            city=user.city,
            country=user.country,
            is_admin=user.is_admin,
            is_premium=user.is_premium,
            primary_auth_provider=user.primary_auth_provider,
            auth_providers=list(user.auth_providers),
            login_count=user.login_count,
            last_login=user.last_login,
            created_at=user.created_at,
        )


class IdentityInfo(BaseModel):
    """Public view of a linked identity."""

    identity_id: str
    provider: AuthProvider
    provider_id: str
    is_primary: bool
    is_verified: bool
    metadata: dict[str, Any]
    created_at: datetime

    @classmethod
    def from_identity(cls, identity: UserIdentity) -> "IdentityInfo":
        return cls(
            identity_id=str(identity.id),
            provider=identity.provider,
            provider_id=identity.provider_id,
            is_primary=identity.is_primary,
            is_verified=identity.is_verified,
            metadata=dict(identity.metadata),
            created_at=identity.created_at,
        )
