from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import status
from fastapi.responses import JSONResponse

from app.core.exceptions import (
    AuthError,
    AuthValidationError,
    NotAuthenticatedError,
    ProfileNotFoundError,
    ProfileQueryError,
    ProviderAuthError,
)
from app.utils.logging import get_logger

if TYPE_CHECKING:
    from fastapi import FastAPI, Request

logger = get_logger("app.errors")

# Postgres "insufficient_privilege", returned when an RLS check rejects a write
RLS_VIOLATION_CODE = "42501"


def status_for(err: AuthError) -> int:
    """HTTP status for an auth layer error."""
    if isinstance(err, AuthValidationError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(err, NotAuthenticatedError):
        return status.HTTP_401_UNAUTHORIZED
    if isinstance(err, ProfileNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(err, ProfileQueryError):
        if err.code == RLS_VIOLATION_CODE:
            return status.HTTP_403_FORBIDDEN
        return status.HTTP_502_BAD_GATEWAY
    if isinstance(err, ProviderAuthError):
        if err.status is not None and 400 <= err.status < 500:
            return err.status
        if err.status is not None and err.status >= 500:
            return status.HTTP_502_BAD_GATEWAY
        return status.HTTP_400_BAD_REQUEST
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render an auth layer error, keeping the provider's message."""
    code = status_for(exc)
    extra = {
        "method": request.method,
        "path": request.url.path,
        "status_code": code,
        "error_type": type(exc).__name__,
        "error_code": exc.code,
    }
    if code >= 500:
        logger.error("Auth error: %s", exc.message, extra=extra)
    else:
        logger.info("Auth error: %s", exc.message, extra=extra)
    headers = {"WWW-Authenticate": "Bearer"} if code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(status_code=code, content={"detail": exc.message}, headers=headers)


def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception",
        extra={"method": request.method, "path": request.url.path, "error": str(exc)},
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
