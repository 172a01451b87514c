"""JWT token utilities."""

from datetime import datetime, timedelta, timezone

import jwt
from pydantic import BaseModel

from canon.config import AuthSettings


class TokenPayload(BaseModel):
    """JWT token payload."""

    sub: str  # Canonical user id
    exp: datetime
    iat: datetime | None = None
    provider: str | None = None  # Provider of the login that issued the token


class JWTError(Exception):
    """JWT-related error."""

    pass


def create_token(
    user_id: str, settings: AuthSettings, provider: str | None = None
) -> str:
    """Create a JWT token for the user.

    Args:
        user_id: Canonical user ID
        settings: Authentication settings
        provider: Provider used for the login, if any

    Returns:
        Encoded JWT token
    """
    now = datetime.now(timezone.utc)
    expiry = now + timedelta(days=settings.jwt_expiry_days)

    payload = {
        "sub": user_id,
        "iat": now,
        "exp": expiry,
    }
    if provider:
        payload["provider"] = provider

    token = jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)

    return token


def verify_token(token: str, settings: AuthSettings) -> TokenPayload:
    """Verify and decode a JWT token.

    Args:
        token: JWT token to verify
        settings: Authentication settings

    Returns:
        Token payload if valid

    Raises:
        JWTError: If token is invalid or expired
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
        return TokenPayload(**payload)
    except jwt.ExpiredSignatureError:
        raise JWTError("Token has expired")
    except jwt.InvalidTokenError:
        raise JWTError("Invalid token")
