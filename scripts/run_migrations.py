#!/usr/bin/env python3
"""Apply identity store migrations, reporting failures to Logfire."""

import sys

import logfire
from alembic import command
from alembic.config import Config

from canon.config import Settings
from canon.util.observability import configure_logfire


def main(revision: str = "head") -> int:
    """Upgrade the database to ``revision``.

    Args:
        revision: Alembic revision to upgrade to

    Returns:
        Process exit code
    """
    settings = Settings()
    configure_logfire(settings)

    with logfire.span("migrations.upgrade", revision=revision):
        try:
            command.upgrade(Config("alembic.ini"), revision)
        except Exception as e:
            logfire.error(
                "Identity store migration failed",
                revision=revision,
                error=str(e),
                error_type=type(e).__name__,
                _exc_info=sys.exc_info(),
            )
            # A half-migrated store must not be served
            raise

    logfire.info("Identity store migrated", revision=revision)
    return 0


if __name__ == "__main__":
    sys.exit(main(*sys.argv[1:2]))
