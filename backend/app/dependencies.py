from __future__ import annotations

import asyncio
import math
import time
from typing import TYPE_CHECKING

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from supabase import Client  # noqa: TCH002

from app.config import settings
from app.core.schemas.auth import AuthUser
from app.core.services.auth_service import AuthService
from app.db.base import create_request_supabase_client
from app.utils.logging import get_logger

logger = get_logger(__name__)

# Use auto_error=False to handle missing tokens gracefully
http_bearer = HTTPBearer(auto_error=False)

if TYPE_CHECKING:
    from collections.abc import Callable


# In-memory rate limiting
_login_attempts: dict[str, list[float]] = {}


def _prune_attempts(window_start: float) -> None:
    """Drop attempts older than the window, and identifiers left with none."""
    for identifier in list(_login_attempts):
        recent = [attempt for attempt in _login_attempts[identifier] if attempt > window_start]
        if recent:
            _login_attempts[identifier] = recent
        else:
            del _login_attempts[identifier]


def _is_rate_limited(identifier: str) -> bool:
    """Check if the identifier is rate limited."""
    if not settings.enable_rate_limiting:
        return False
    now = time.time()
    window_start = now - settings.login_attempt_window
    _prune_attempts(window_start)
    attempts = _login_attempts.get(identifier, [])
    if len(attempts) >= settings.max_login_attempts:
        return True
    _login_attempts.setdefault(identifier, []).append(now)
    return False


def reset_rate_limits() -> None:
    _login_attempts.clear()


def rate_limit_by_ip(request: Request, operation: str = "default") -> None:
    """Reject the request with 429 once ``operation`` was attempted too often from its IP.

    Args:
        request: FastAPI request object
        operation: Operation identifier for rate limiting (e.g., "signin", "signup")

    Raises:
        HTTPException: If rate limit is exceeded
    """
    client_ip = request.client.host if request.client else "unknown"
    identifier = f"{operation}:{client_ip}"
    if _is_rate_limited(identifier):
        logger.warning(f"Rate limited {operation} attempt", extra={"ip": client_ip})

        now = time.time()
        window_seconds = settings.login_attempt_window
        limit = settings.max_login_attempts

        attempts = _login_attempts.get(identifier, [])
        earliest_attempt = min(attempts) if attempts else now
        seconds_until_reset = max(1, math.ceil(window_seconds - (now - earliest_attempt)))

        headers = {
            "Retry-After": str(seconds_until_reset),
            "RateLimit-Limit": str(limit),
            "RateLimit-Remaining": "0",
            "RateLimit-Reset": str(seconds_until_reset),
        }

        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Too many {operation} attempts. Please try again later.",
            headers=headers,
        )


def rate_limited(operation: str) -> Callable[[Request], None]:
    """Build a dependency applying ``rate_limit_by_ip`` for one operation."""

    def dependency(request: Request) -> None:
        rate_limit_by_ip(request, operation)

    return dependency


def get_request_supabase_client() -> Client:
    """Anonymous request-scoped client for sign-up, sign-in and recovery emails."""
    return create_request_supabase_client()


async def get_authenticated_supabase_client(
    credentials: HTTPAuthorizationCredentials | None = Security(http_bearer),
) -> Client:
    """Request-scoped client acting as the bearer of the access token.

    GoTrue validates the token while the session is set; PostgREST then
    enforces RLS for that user on every profiles query.
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    jwt = credentials.credentials
    if not jwt or len(jwt.split(".")) != 3:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token format",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return await asyncio.to_thread(lambda: create_request_supabase_client(jwt))
    except Exception as err:
        error_msg = str(err).lower()
        logger.warning(
            "JWT validation failed",
            extra={
                "error_type": type(err).__name__,
                "error_summary": error_msg[:100] if error_msg else "Unknown error",
                "jwt_length": len(jwt),
            }
        )
        if "invalid" in error_msg or "expired" in error_msg:
            detail = "Token is invalid or expired"
        else:
            detail = "Authentication failed"
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        ) from err


def get_auth_service(client: Client = Depends(get_request_supabase_client)) -> AuthService:
    """Auth service for unauthenticated operations."""
    return AuthService(client)


def get_user_auth_service(client: Client = Depends(get_authenticated_supabase_client)) -> AuthService:
    """Auth service acting for the bearer of the request."""
    return AuthService(client)


async def get_current_user(
    auth_service: AuthService = Depends(get_user_auth_service),
) -> AuthUser:
    """Return the bearer's user joined with their profile."""
    user = await auth_service.get_current_user()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user data",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def require_admin(current_user: AuthUser = Depends(get_current_user)) -> AuthUser:
    """Allow only users whose profile role is admin."""
    if not current_user.is_admin:
        logger.warning("Admin endpoint denied", extra={"user_id": str(current_user.id)})
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required",
        )
    return current_user
