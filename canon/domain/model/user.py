"""Canonical user aggregate root.

One user represents one human across every login method. The backing
``users`` table is shared with other applications, so every field besides
``id`` has a default that applies when the live schema lacks its column.
"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from canon.domain.model.common import DomainModel, utcnow
from canon.domain.value import UserId


class User(DomainModel):
    """Canonical user - provider-agnostic.

    Users can authenticate with multiple providers (Google, LinkedIn,
    WhatsApp, password). Each provider credential is a linked UserIdentity.
    """

    id: UserId
    full_name: str = "Unknown User"
    email: Optional[str] = None  # Secondary key, not unique
    phone: Optional[str] = None  # Messaging-channel number
    avatar_url: Optional[str] = None
    rank: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    is_admin: bool = False
    is_premium: bool = False
    primary_auth_provider: Optional[str] = None
    auth_providers: list[str] = Field(default_factory=list)
    login_count: int = Field(default=0, ge=0)
    last_login: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def aliases(self) -> set[str]:
        """Identifiers (besides provider ids) this user can be resolved by."""
        aliases = {str(self.id)}
        if self.email:
            aliases.add(self.email)
        if self.phone:
            aliases.add(self.phone)
        return aliases
