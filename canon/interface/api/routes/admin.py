"""Admin routes for identity support and cache operations."""

from dishka.integrations.fastapi import DishkaRoute, FromDishka
from fastapi import APIRouter, Depends, Query

from canon.application.usecase.admin import (
    ClearCacheUseCase,
    FindDuplicatesUseCase,
    GetCacheStatsUseCase,
    ResolveIdentifierUseCase,
)
from canon.application.usecase.admin.cache import (
    CacheStatsResponse,
    ClearCacheResponse,
)
from canon.application.usecase.admin.find_duplicates import FindDuplicatesResponse
from canon.application.usecase.admin.resolve_identifier import (
    ResolveIdentifierRequest,
    ResolveIdentifierResponse,
)
from canon.interface.api.auth_context import require_admin

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    route_class=DishkaRoute,
    dependencies=[Depends(require_admin)],
)


@router.get("/resolve", response_model=ResolveIdentifierResponse)
async def resolve_identifier(
    resolve_identifier_use_case: FromDishka[ResolveIdentifierUseCase],
    identifier: str = Query(min_length=1),
) -> ResolveIdentifierResponse:
    """Show which account an id, email, phone or provider id resolves to."""
    return await resolve_identifier_use_case.execute(
        ResolveIdentifierRequest(identifier=identifier)
    )


@router.get("/cache", response_model=CacheStatsResponse)
async def cache_stats(
    get_cache_stats_use_case: FromDishka[GetCacheStatsUseCase],
) -> CacheStatsResponse:
    """Credential cache counters for this process."""
    return await get_cache_stats_use_case.execute()


@router.delete("/cache", response_model=ClearCacheResponse)
async def clear_cache(
    clear_cache_use_case: FromDishka[ClearCacheUseCase],
) -> ClearCacheResponse:
    """Drop every cached credential in this process."""
    return await clear_cache_use_case.execute()


@router.get("/duplicates", response_model=FindDuplicatesResponse)
async def find_duplicates(
    find_duplicates_use_case: FromDishka[FindDuplicatesUseCase],
) -> FindDuplicatesResponse:
    """Accounts sharing an email or phone number, for manual merging."""
    return await find_duplicates_use_case.execute()
