"""Core DI providers (non-mockable)."""

from collections.abc import Iterator

from dishka import Scope, provide
import logfire

from canon.config import AuthSettings, IdentitySettings, Settings
from canon.util.cache import CredentialCache
from canon.util.di.base import ProviderBase


class ProdConfigProvider(ProviderBase):
    """Production config provider - concrete, no mocks needed.

    Settings are loaded from environment variables and .env file automatically.
    """

    @provide(scope=Scope.APP)
    def provide_settings(self) -> Settings:
        """Provide application settings from environment."""
        return Settings()

    @provide(scope=Scope.APP)
    def provide_auth_settings(self, settings: Settings) -> AuthSettings:
        """Provide auth settings."""
        return settings.auth

    @provide(scope=Scope.APP)
    def provide_identity_settings(self, settings: Settings) -> IdentitySettings:
        """Provide identity resolution settings."""
        return settings.identity

    @provide(scope=Scope.APP)
    def provide_credential_cache(self, settings: Settings) -> Iterator[CredentialCache]:
        """Provide the process-wide credential cache.

        Closed when the container shuts down.
        """
        cache = CredentialCache(
            ttl_seconds=settings.cache.ttl_seconds,
            max_entries=settings.cache.max_entries,
            enabled=settings.cache.enabled,
        )
        logfire.info(
            "Credential cache started",
            enabled=cache.enabled,
            ttl_seconds=cache.ttl_seconds,
            max_entries=cache.max_entries,
        )
        yield cache
        cache.close()
        logfire.info("Credential cache closed")
