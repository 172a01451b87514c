"""Credential cache admin use cases."""

import logfire
from pydantic import BaseModel

from canon.util.cache import CredentialCache


class CacheStatsResponse(BaseModel):
    """Credential cache counters."""

    enabled: bool
    total_entries: int
    expired_entries: int
    active_entries: int
    max_entries: int
    ttl_seconds: float
    hits: int
    misses: int
    evictions: int


class ClearCacheResponse(BaseModel):
    """Result of clearing the credential cache."""

    removed: int


class GetCacheStatsUseCase:
    """Use case for inspecting the credential cache."""

    def __init__(self, cache: CredentialCache) -> None:
        self.cache = cache

    async def execute(self) -> CacheStatsResponse:
        return CacheStatsResponse(**self.cache.stats())


class ClearCacheUseCase:
    """Use case for dropping every cached credential in this process."""

    def __init__(self, cache: CredentialCache) -> None:
        self.cache = cache

    async def execute(self) -> ClearCacheResponse:
        removed = self.cache.invalidate_all()
        logfire.info("Credential cache cleared by admin", removed=removed)
        return ClearCacheResponse(removed=removed)
