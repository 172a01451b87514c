"""User profile routes."""

from dishka.integrations.fastapi import DishkaRoute, FromDishka
from fastapi import APIRouter, Depends

from canon.application.usecase.dto import UserInfo
from canon.application.usecase.user import UpdateProfileUseCase
from canon.application.usecase.user.update_profile import UpdateProfileRequest
from canon.domain.model import AuthContext
from canon.domain.value import ProfileUpdate
from canon.interface.api.auth_context import require_auth

router = APIRouter(prefix="/users", tags=["users"], route_class=DishkaRoute)


@router.patch("/me", response_model=UserInfo)
async def update_my_profile(
    request: ProfileUpdate,
    update_profile_use_case: FromDishka[UpdateProfileUseCase],
    context: AuthContext = Depends(require_auth),
) -> UserInfo:
    """Update the authenticated user's profile.

    Only fields present in the body change. Every cached alias of the user
    is dropped, so the next lookup by id, email, phone or provider id sees
    the new values.

    Example:
        PATCH /users/me
        {"city": "Mumbai", "rank": "Chief Officer"}
    """
    return await update_profile_use_case.execute(
        UpdateProfileRequest(user_id=str(context.user_id), update=request)
    )
