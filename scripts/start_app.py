#!/usr/bin/env python3
"""Start the identity API with Logfire and logging configured first."""

import sys

import logfire
import uvicorn

from canon.config import Settings
from canon.util.logging import setup_logging
from canon.util.observability import configure_logfire


def main() -> int:
    """Configure observability, then serve the app.

    Startup failures are reported to Logfire and re-raised so the
    container exits non-zero.
    """
    settings = Settings()
    configure_logfire(settings)
    setup_logging(settings)

    try:
        logfire.info(
            "Starting identity API",
            environment=settings.environment,
            git_sha=settings.git_sha,
            cache_enabled=settings.cache.enabled,
        )
        uvicorn.run(
            "canon.interface.api.app:app",
            host="0.0.0.0",
            port=settings.port,
            log_level="debug" if settings.debug else "info",
        )
        return 0

    except Exception as e:
        logfire.error(
            "Identity API startup failed",
            error=str(e),
            error_type=type(e).__name__,
            _exc_info=sys.exc_info(),
        )
        raise


if __name__ == "__main__":
    sys.exit(main())
