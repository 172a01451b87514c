"""User identity entity.

Links an external authentication credential to a canonical user.
"""

from datetime import datetime
from typing import Any

from pydantic import Field

from canon.domain.model.common import DomainModel, utcnow
from canon.domain.model.user import User
from canon.domain.value import AuthProvider, UserId, UserIdentityId


class UserIdentity(DomainModel):
    """A (provider, provider_id) credential bound to exactly one user.

    The pair is globally unique; each user has at most one primary identity.
    """

    id: UserIdentityId
    user_id: UserId
    provider: AuthProvider
    provider_id: str  # Opaque id issued by the provider (sub, phone, etc.)
    is_primary: bool = False
    is_verified: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class UserWithIdentities(DomainModel):
    """A user together with every credential linked to it, primary first."""

    user: User
    identities: list[UserIdentity] = Field(default_factory=list)
