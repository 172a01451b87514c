"""Per-request authentication context.

``AuthContextMiddleware`` tries each credential carrier in a fixed order
and resolves the first usable subject to a canonical user. The result is
computed once per request and stored on ``request.state.auth_context``;
``require_auth`` and ``require_admin`` are gates layered on top of it.
``require_collaborator`` guards the calls only provider collaborators
may make.
"""

import secrets
from collections.abc import Callable
from typing import Any

import logfire
from fastapi import Depends, HTTPException, Request, status

from canon.config import AuthSettings
from canon.domain.model import AuthContext, User
from canon.domain.service import (
    IdentityConsolidationService,
    IdentityResolver,
    JWTService,
)
from canon.domain.value import AuthMethod, AuthProvider, is_email

# Provider that issued legacy sessions
LEGACY_SESSION_PROVIDER = AuthProvider.REPLIT


def _session(request: Request) -> dict[str, Any]:
    # Present only when SessionMiddleware is installed
    session = request.scope.get("session")
    return session if isinstance(session, dict) else {}


class AuthContextMiddleware:
    """Bearer JWT, then session, then legacy session; first success wins.

    A strategy whose credential is missing, invalid or names an unknown
    user falls through to the next one. No strategy ever raises for a bad
    credential: the anonymous context is a valid outcome.
    """

    def __init__(
        self,
        jwt_service: JWTService,
        identity_resolver: IdentityResolver,
        consolidation_service: IdentityConsolidationService,
        auth_settings: AuthSettings,
    ) -> None:
        """Initialize the authentication chain.

        Args:
            jwt_service: JWT token domain service
            identity_resolver: Canonical identity resolver
            consolidation_service: Backfills identities for legacy sessions
            auth_settings: Authentication settings (cookie names)
        """
        self.jwt_service = jwt_service
        self.identity_resolver = identity_resolver
        self.consolidation_service = consolidation_service
        self.auth_settings = auth_settings
        self._strategies: list[tuple[AuthMethod, Callable[[Request], str | None]]] = [
            (AuthMethod.JWT, self._jwt_subject),
            (AuthMethod.SESSION, self._session_subject),
            (AuthMethod.LEGACY_SESSION, self._legacy_session_subject),
        ]

    async def authenticate(self, request: Request) -> AuthContext:
        """Build the auth context for a request.

        A legacy session whose subject is unknown but whose email belongs to
        an account gets its provider identity backfilled onto that account.

        Raises:
            TransientStoreError: If the store is unavailable while resolving
            IdentityConflictError: If a legacy session's credential is
                linked to a different account
        """
        with logfire.span("auth_context.authenticate", path=request.url.path):
            for method, strategy in self._strategies:
                subject = strategy(request)
                if not subject:
                    continue

                user = await self.identity_resolver.resolve(subject)
                if user is None and method is AuthMethod.LEGACY_SESSION:
                    user = await self._backfill_legacy_identity(request, subject)
                if user is not None:
                    logfire.debug(
                        "Request authenticated",
                        auth_method=method.value,
                        user_id=str(user.id),
                    )
                    return AuthContext.for_user(user, method)

                logfire.info(
                    "Credential subject did not resolve",
                    auth_method=method.value,
                )

            return AuthContext.anonymous()

    def bearer_token(self, request: Request) -> str | None:
        """JWT from the Authorization header, else from the auth cookie."""
        header = request.headers.get("authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() == "bearer" and token.strip():
            return token.strip()
        return request.cookies.get(self.auth_settings.auth_cookie) or None

    def _jwt_subject(self, request: Request) -> str | None:
        return self.jwt_service.get_user_id_from_token(self.bearer_token(request))

    @staticmethod
    def _session_subject(request: Request) -> str | None:
        user_id = _session(request).get("user_id")
        return str(user_id) if user_id else None

    @staticmethod
    def _legacy_session_subject(request: Request) -> str | None:
        legacy_user = _session(request).get("user")
        if not isinstance(legacy_user, dict):
            return None
        user_id = legacy_user.get("id")
        return str(user_id) if user_id else None

    async def _backfill_legacy_identity(
        self, request: Request, subject: str
    ) -> User | None:
        email = _session(request)["user"].get("email")
        if not isinstance(email, str) or not is_email(email):
            return None
        user = await self.identity_resolver.resolve(email)
        if user is None:
            return None
        await self.consolidation_service.ensure_identity(
            user, LEGACY_SESSION_PROVIDER, subject
        )
        return user


async def get_auth_context(request: Request) -> AuthContext:
    """FastAPI dependency: the request's auth context, computed once.

    Args:
        request: Current request (carries the dishka request container)

    Returns:
        Authenticated or anonymous context
    """
    cached = getattr(request.state, "auth_context", None)
    if cached is not None:
        return cached

    container = request.state.dishka_container
    middleware = await container.get(AuthContextMiddleware)
    context = await middleware.authenticate(request)
    request.state.auth_context = context
    return context


async def require_auth(
    context: AuthContext = Depends(get_auth_context),
) -> AuthContext:
    """Gate: 401 unless the request is authenticated."""
    if not context.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return context


async def require_admin(
    context: AuthContext = Depends(require_auth),
) -> AuthContext:
    """Gate: 401 when unauthenticated, 403 when not an admin."""
    if not context.is_admin:
        logfire.warn("Admin route refused", user_id=str(context.user_id))
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return context


async def require_collaborator(request: Request) -> None:
    """Gate: 401 unless the caller presents the collaborator secret.

    Login and link calls assert that a provider verified a credential;
    only the collaborators that perform that verification may make them.
    """
    container = request.state.dishka_container
    auth_settings = await container.get(AuthSettings)
    presented = request.headers.get(auth_settings.collaborator_header, "")
    if not presented or not secrets.compare_digest(
        presented.encode(), auth_settings.collaborator_secret.encode()
    ):
        logfire.warn(
            "Collaborator credential refused",
            path=request.url.path,
            presented=bool(presented),
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Collaborator authentication required",
        )
