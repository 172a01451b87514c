"""Linked identity routes for the authenticated user."""

from typing import Any
from uuid import UUID

from dishka.integrations.fastapi import DishkaRoute, FromDishka
from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, Field

from canon.application.usecase.dto import IdentityInfo
from canon.application.usecase.identity import (
    LinkIdentityUseCase,
    ListIdentitiesUseCase,
    SetPrimaryIdentityUseCase,
    UnlinkIdentityUseCase,
)
from canon.application.usecase.identity.link_identity import LinkIdentityUseCaseRequest
from canon.application.usecase.identity.list_identities import (
    ListIdentitiesRequest,
    ListIdentitiesResponse,
)
from canon.application.usecase.identity.set_primary_identity import (
    SetPrimaryIdentityRequest,
)
from canon.application.usecase.identity.unlink_identity import UnlinkIdentityRequest
from canon.domain.model import AuthContext
from canon.domain.value import AuthProvider
from canon.interface.api.auth_context import require_auth, require_collaborator
from canon.interface.api.rate_limits import identity_mutation_limit, limiter

router = APIRouter(
    prefix="/users/me/identities", tags=["identities"], route_class=DishkaRoute
)


class LinkIdentityAPIRequest(BaseModel):
    """API request for linking a provider-verified credential.

    Verification is decided by the provider, never by the caller.
    """

    provider: AuthProvider
    provider_id: str = Field(min_length=1, max_length=255)
    metadata: dict[str, Any] = Field(default_factory=dict)


@router.get("", response_model=ListIdentitiesResponse)
async def list_identities(
    list_identities_use_case: FromDishka[ListIdentitiesUseCase],
    context: AuthContext = Depends(require_auth),
) -> ListIdentitiesResponse:
    """List the caller's linked identities, primary first."""
    return await list_identities_use_case.execute(
        ListIdentitiesRequest(user_id=str(context.user_id))
    )


@router.post(
    "",
    response_model=IdentityInfo,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_collaborator)],
)
@limiter.limit(identity_mutation_limit)
async def link_identity(
    body: LinkIdentityAPIRequest,
    request: Request,
    link_identity_use_case: FromDishka[LinkIdentityUseCase],
    context: AuthContext = Depends(require_auth),
) -> IdentityInfo:
    """Link another login method to the caller's account.

    Linking a credential already on this account returns it unchanged.
    A credential owned by another account is refused with 409
    (``already_linked``). Only provider collaborators, which verified the
    credential on the user's behalf, may call this.
    """
    return await link_identity_use_case.execute(
        LinkIdentityUseCaseRequest(
            user_id=str(context.user_id),
            provider=body.provider,
            provider_id=body.provider_id,
            metadata=body.metadata,
        )
    )


@router.delete("/{provider}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(identity_mutation_limit)
async def unlink_identity(
    provider: AuthProvider,
    request: Request,
    unlink_identity_use_case: FromDishka[UnlinkIdentityUseCase],
    context: AuthContext = Depends(require_auth),
) -> None:
    """Unlink a login method.

    The last remaining login method cannot be unlinked (422).
    """
    await unlink_identity_use_case.execute(
        UnlinkIdentityRequest(user_id=str(context.user_id), provider=provider)
    )


@router.put("/{identity_id}/primary", response_model=IdentityInfo)
@limiter.limit(identity_mutation_limit)
async def set_primary_identity(
    identity_id: UUID,
    request: Request,
    set_primary_identity_use_case: FromDishka[SetPrimaryIdentityUseCase],
    context: AuthContext = Depends(require_auth),
) -> IdentityInfo:
    """Make one of the caller's identities primary."""
    return await set_primary_identity_use_case.execute(
        SetPrimaryIdentityRequest(user_id=str(context.user_id), identity_id=identity_id)
    )
