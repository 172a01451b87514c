"""Authentication routes.

``POST /auth/login`` is called by provider collaborators (OAuth callback
handlers, the messaging bot) once they have verified a credential. This
service only decides which canonical account the credential belongs to.
"""

import logging
from typing import Any
from urllib.parse import urlencode

from dishka.integrations.fastapi import DishkaRoute, FromDishka
from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel

from canon.application.usecase.auth import GetCurrentUserUseCase, LoginUseCase
from canon.application.usecase.auth.get_current_user import GetCurrentUserRequest
from canon.application.usecase.auth.login import LoginRequest, LoginResponse
from canon.application.usecase.dto import IdentityInfo, UserInfo
from canon.config import Settings
from canon.domain.error import IdentityConflictError
from canon.domain.model import AuthContext
from canon.domain.value import AuthMethod
from canon.interface.api.auth_context import get_auth_context, require_collaborator
from canon.interface.api.rate_limits import limiter, login_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"], route_class=DishkaRoute)


class LogoutResponse(BaseModel):
    """Logout response."""

    success: bool
    message: str


class AuthStatusResponse(BaseModel):
    """Response for checking authentication status.

    Used by /auth/me to return the current user if authenticated,
    or indicate unauthenticated state without raising an error.
    """

    authenticated: bool
    auth_method: AuthMethod = AuthMethod.NONE
    user: UserInfo | None = None
    identities: list[IdentityInfo] = []


def _cookie_settings(settings: Settings) -> dict[str, Any]:
    # Production is cross-site (frontend and API on different hosts)
    if settings.is_production:
        return {
            "domain": settings.auth.cookie_domain,
            "secure": True,
            "samesite": "none",
        }
    return {"domain": settings.auth.cookie_domain, "secure": False, "samesite": "lax"}


def _set_auth_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=settings.auth.auth_cookie,
        value=token,
        httponly=True,
        path="/",
        max_age=settings.auth.jwt_expiry_days * 24 * 60 * 60,
        **_cookie_settings(settings),
    )


@router.post(
    "/login",
    response_model=LoginResponse,
    dependencies=[Depends(require_collaborator)],
)
@limiter.limit(login_limit)
async def login(
    body: LoginRequest,
    request: Request,
    login_use_case: FromDishka[LoginUseCase],
    settings: FromDishka[Settings],
):
    """Complete a login for a provider-verified credential.

    Resolves the credential to its canonical account (creating or linking
    one if needed), issues a JWT cookie and records the user in the session.
    Callers must present the collaborator secret (401 otherwise) and are
    rate limited per client address (429).

    Args:
        body: Provider, provider id and normalized profile
        request: Current request (for the session and rate limiting)
        login_use_case: Login use case from DI
        settings: Application settings from DI

    Returns:
        JSON with token and user, or a 302 to the frontend when
        ``redirect`` is set

    Example:
        POST /auth/login
        {
            "provider": "linkedin",
            "provider_id": "l456",
            "profile": {"email": "a@b.com", "name": "Ada"}
        }

        Conflict response (409):
        {"error": "identity_conflict", "provider": "linkedin"}
    """
    try:
        result = await login_use_case.execute(body)
    except IdentityConflictError as e:
        logger.warning(
            f"Login conflict for {body.provider.value}: credential owned by another account"
        )
        if not body.redirect:
            raise
        query = urlencode({"error": e.code, "provider": e.provider})
        return RedirectResponse(
            url=f"{settings.api.frontend_url}/auth/error?{query}",
            status_code=status.HTTP_302_FOUND,
        )

    request.session["user_id"] = result.user.user_id
    logger.info(
        f"Login completed: provider={body.provider.value}, user_id={result.user.user_id}"
    )

    if body.redirect:
        response: Response = RedirectResponse(
            url=settings.api.frontend_url, status_code=status.HTTP_302_FOUND
        )
    else:
        response = JSONResponse(content=result.model_dump(mode="json"))
    _set_auth_cookie(response, result.token, settings)
    return response


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    request: Request,
    response: Response,
    settings: FromDishka[Settings],
) -> LogoutResponse:
    """Logout user by clearing the auth cookie and the session.

    Args:
        request: Current request (for the session)
        response: FastAPI response object
        settings: Application settings from DI

    Returns:
        Logout success message
    """
    request.session.clear()
    # Delete cookie with same domain/path as when it was created
    response.delete_cookie(
        key=settings.auth.auth_cookie,
        domain=settings.auth.cookie_domain,
        path="/",
    )
    return LogoutResponse(success=True, message="Successfully logged out")


@router.get("/me", response_model=AuthStatusResponse)
async def get_current_user(
    get_current_user_use_case: FromDishka[GetCurrentUserUseCase],
    context: AuthContext = Depends(get_auth_context),
) -> AuthStatusResponse:
    """Get current user if authenticated, or return unauthenticated status.

    This endpoint is safe to call without authentication - it returns
    authenticated=false instead of raising an error.

    Args:
        get_current_user_use_case: Get current user use case from DI
        context: Auth context of the request

    Returns:
        Authentication status with user information if authenticated
    """
    if not context.is_authenticated:
        return AuthStatusResponse(authenticated=False)

    current = await get_current_user_use_case.execute(
        GetCurrentUserRequest(
            user_id=str(context.user_id), auth_method=context.auth_method
        )
    )
    return AuthStatusResponse(
        authenticated=True,
        auth_method=current.auth_method,
        user=current.user,
        identities=current.identities,
    )
