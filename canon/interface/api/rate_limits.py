"""Per-client rate limits for login and identity mutations.

Limits are evaluated per request from the active ``RateLimitSettings``, so
``setup_rate_limiter`` can retune them without re-decorating routes.
"""

import logfire
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from canon.config import RateLimitSettings

# Seconds a throttled client should wait; matches the shortest window in use
RETRY_AFTER_SECONDS = 60

limiter = Limiter(key_func=get_remote_address)

_settings = RateLimitSettings()


def login_limit() -> str:
    return _settings.login


def identity_mutation_limit() -> str:
    return _settings.identity_mutations


async def rate_limit_handler(request: Request, exc: Exception) -> JSONResponse:
    """429 with a machine-readable body."""
    logfire.warn(
        "Rate limit exceeded",
        path=request.url.path,
        client=get_remote_address(request),
    )
    return JSONResponse(
        status_code=429,
        content={"error": "rate_limited", "message": "Too many requests"},
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )


def setup_rate_limiter(app: FastAPI, settings: RateLimitSettings) -> None:
    """Attach the limiter to an application.

    Counters start empty for every application so limits from one app
    instance never leak into another.

    Args:
        app: FastAPI application
        settings: Limits and the on/off switch
    """
    global _settings
    _settings = settings
    limiter.enabled = settings.enabled
    limiter.reset()
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
