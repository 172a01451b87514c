"""Domain value objects for identity resolution."""

from canon.domain.value.contact import (
    is_email,
    is_phone,
    normalize_email,
    phone_variants,
)
from canon.domain.value.identifiers import UserId, UserIdentityId
from canon.domain.value.types import (
    AuthMethod,
    AuthProvider,
    LinkIdentityRequest,
    LoginProfile,
    ProfileUpdate,
)

__all__ = [
    # Identifiers
    "UserId",
    "UserIdentityId",
    # Types
    "AuthMethod",
    "AuthProvider",
    "LinkIdentityRequest",
    "LoginProfile",
    "ProfileUpdate",
    # Identifier syntax
    "is_email",
    "is_phone",
    "normalize_email",
    "phone_variants",
]
