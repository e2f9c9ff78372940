"""
Centralized exception handlers

Domain exceptions are mapped to HTTP responses with a uniform body:

    {"error": "Human-readable message"}

Registration validation failures add a "fields" object mapping each
rejected field to its message.
"""

import logging
import math

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from ..encryption import EncryptionConfigError
from ..rate_limit import RateLimitExceeded
from ..rbac import AccessDeniedError
from ..registrations import RegistrationValidationError


logger = logging.getLogger(__name__)

ENCRYPTION_UNAVAILABLE = "Encryption service unavailable"


async def access_denied_handler(request: Request, exc: AccessDeniedError) -> JSONResponse:
    logger.info(f"{request.method} {request.url.path} denied: {exc}")
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})


async def encryption_config_handler(request: Request, exc: EncryptionConfigError) -> JSONResponse:
    # Key problems are for operators; clients get a generic message
    logger.error(f"Encryption unavailable for {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": ENCRYPTION_UNAVAILABLE},
    )


async def registration_validation_handler(
    request: Request, exc: RegistrationValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": str(exc), "fields": exc.errors},
    )


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(f"Rate limit exceeded for {exc.client_id} on {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"error": "Too many requests. Please try again later."},
        headers={"Retry-After": str(max(1, math.ceil(exc.retry_after)))},
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all domain exception handlers on the app"""
    app.add_exception_handler(AccessDeniedError, access_denied_handler)
    app.add_exception_handler(EncryptionConfigError, encryption_config_handler)
    app.add_exception_handler(RegistrationValidationError, registration_validation_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
