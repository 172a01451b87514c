"""Domain value objects for identity resolution.

Value objects are immutable and defined by their values, not identity.
"""

from enum import Enum
from typing import Any

from pydantic import Field, field_validator

from canon.domain.value.common import ValueObject


class AuthProvider(str, Enum):
    """Supported authentication providers.

    PASSWORD is the first-party login that issues JWTs directly; the OAuth
    vendors and WhatsApp arrive as normalized profiles from collaborators.
    """

    PASSWORD = "password"
    GOOGLE = "google"
    LINKEDIN = "linkedin"
    APPLE = "apple"
    REPLIT = "replit"
    WHATSAPP = "whatsapp"
    EMAIL = "email"


class AuthMethod(str, Enum):
    """How the current request was authenticated."""

    JWT = "jwt"
    SESSION = "session"
    LEGACY_SESSION = "legacy_session"
    NONE = "none"


class LoginProfile(ValueObject):
    """Normalized login profile emitted by a provider collaborator.

    Every field is optional; providers fill what they know. Camel-case keys
    (``displayName``, ``avatarUrl``) are accepted as aliases.
    """

    email: str | None = None
    name: str | None = None
    display_name: str | None = Field(default=None, alias="displayName")
    avatar_url: str | None = Field(default=None, alias="avatarUrl")
    first_name: str | None = Field(default=None, alias="firstName")
    last_name: str | None = Field(default=None, alias="lastName")
    phone: str | None = None

    model_config = ValueObject.model_config | {"populate_by_name": True}

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str | None) -> str | None:
        """Lower-case and trim emails; blank becomes None."""
        if v is None:
            return None
        v = v.strip().lower()
        return v or None

    def full_name(self) -> str | None:
        """Best human name available in the profile."""
        if self.name:
            return self.name
        if self.display_name:
            return self.display_name
        joined = " ".join(p for p in (self.first_name, self.last_name) if p).strip()
        return joined or None

    def as_metadata(self) -> dict[str, Any]:
        """Profile fields worth keeping on the identity row."""
        return self.model_dump(exclude_none=True)


class LinkIdentityRequest(ValueObject):
    """Credential to bind to an existing user."""

    provider: AuthProvider
    provider_id: str = Field(min_length=1, max_length=255)
    metadata: dict[str, Any] = Field(default_factory=dict)


class ProfileUpdate(ValueObject):
    """Caller-owned profile changes; unset fields are left untouched."""

    full_name: str | None = Field(default=None, min_length=1, max_length=255)
    email: str | None = None
    phone: str | None = None
    avatar_url: str | None = None
    rank: str | None = None
    city: str | None = None
    country: str | None = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip().lower() or None

    def changes(self) -> dict[str, Any]:
        """Only the fields the caller explicitly set."""
        return self.model_dump(exclude_unset=True)
