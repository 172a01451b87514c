"""FastAPI application."""

from dishka import AsyncContainer
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

from canon.config import Settings
from canon.interface.api.rate_limits import setup_rate_limiter
from canon.interface.api.routes import admin, auth, health, identities, users
from canon.interface.error import register_exception_handlers
from canon.util.di.container import create_container, setup_di
from canon.util.observability import instrument_fastapi


def create_app(
    container: AsyncContainer | None = None, settings: Settings | None = None
) -> FastAPI:
    """Create FastAPI application.

    Note: Logfire should be configured before calling this function.
    In production, start_app.py handles this.

    Args:
        container: DI container; the production container when omitted
        settings: Application settings; loaded from the environment when omitted
    """
    settings = settings or Settings()

    app_instance = FastAPI(
        title="Canon Identity API",
        description="Canonical user identity: one account per person across every login method",
        version="0.1.0",
    )

    # Instrument FastAPI for automatic tracing of HTTP requests
    instrument_fastapi(app_instance)

    # Signed cookie session; carries user_id for session-based auth
    app_instance.add_middleware(
        SessionMiddleware,
        secret_key=settings.auth.session_secret,
        session_cookie=settings.auth.session_cookie,
        same_site="none" if settings.is_production else "lax",
        https_only=settings.is_production,
    )

    app_instance.add_middleware(
        CORSMiddleware,
        allow_origins=[
            settings.api.frontend_url,
            "http://localhost:3000",  # Local development
            "http://localhost:5173",  # Vite default
        ],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "Accept",
            "Origin",
            "User-Agent",
            "Cache-Control",
            "X-Requested-With",
        ],
        expose_headers=["Content-Length", "Content-Type"],
        max_age=600,  # Cache preflight requests for 10 minutes
    )

    register_exception_handlers(app_instance)
    setup_rate_limiter(app_instance, settings.rate_limit)

    # Setup dependency injection
    setup_di(app_instance, container or create_container())

    # Register routes
    app_instance.include_router(health.router)
    app_instance.include_router(auth.router)
    app_instance.include_router(users.router)
    app_instance.include_router(identities.router)
    app_instance.include_router(admin.router)

    return app_instance


# Create app instance for uvicorn
# Note: Logfire must be configured before this module is imported
# In production: start_app.py handles this
app = create_app()
