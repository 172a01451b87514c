"""Admin use cases."""

from .cache import ClearCacheUseCase, GetCacheStatsUseCase
from .find_duplicates import FindDuplicatesUseCase
from .resolve_identifier import ResolveIdentifierUseCase

__all__ = [
    "ClearCacheUseCase",
    "FindDuplicatesUseCase",
    "GetCacheStatsUseCase",
    "ResolveIdentifierUseCase",
]
