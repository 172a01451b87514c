"""Mapping of domain and persistence errors to HTTP responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from canon.domain.error import (
    BusinessRuleViolationError,
    IdentityConflictError,
    NotFoundError,
)
from canon.persistence.error import TransientStoreError

logger = logging.getLogger(__name__)

# Seconds a client should wait before retrying after a store outage
RETRY_AFTER_SECONDS = 5


async def identity_conflict_handler(
    request: Request, exc: IdentityConflictError
) -> JSONResponse:
    """409 naming only the error code and provider.

    Neither the owning account nor the presented provider id is echoed.
    """
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "error": exc.code,
            "provider": exc.provider,
        },
    )


async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": "not_found", "resource": exc.resource, "message": str(exc)},
    )


async def business_rule_handler(
    request: Request, exc: BusinessRuleViolationError
) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"error": "business_rule_violation", "message": str(exc)},
    )


async def transient_store_handler(
    request: Request, exc: TransientStoreError
) -> JSONResponse:
    logger.warning(f"Store unavailable for {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"error": "store_unavailable", "message": "Please retry shortly"},
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the error mapping on an application.

    Args:
        app: FastAPI application
    """
    app.add_exception_handler(IdentityConflictError, identity_conflict_handler)
    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(BusinessRuleViolationError, business_rule_handler)
    app.add_exception_handler(TransientStoreError, transient_store_handler)
