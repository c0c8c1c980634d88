from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from starlette.middleware.base import BaseHTTPMiddleware

from app.config import settings
from app.utils.logging import get_logger

if TYPE_CHECKING:
    from fastapi import Request
    from starlette.types import ASGIApp

logger = get_logger(__name__)


def build_csp(supabase_url: str) -> str:
    """Content-Security-Policy allowing the API itself and the Supabase project."""
    parts = urlsplit(supabase_url)
    supabase_origin = f"{parts.scheme}://{parts.netloc}" if parts.scheme and parts.netloc else "https://*.supabase.co"
    return (
        "default-src 'self'; "
        "img-src 'self' data: https:; "
        f"connect-src 'self' {supabase_origin}; "
        "frame-ancestors 'none';"
    )


class SecurityMiddleware(BaseHTTPMiddleware):
    """Security middleware adding essential headers and auditing auth traffic."""

    def __init__(self, app: ASGIApp, *, auth_path_prefix: str | None = None):
        super().__init__(app)
        self.auth_path_prefix = auth_path_prefix or f"{settings.api_prefix}/auth"
        self.csp_policy = build_csp(settings.supabase_url)

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = self.csp_policy

        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = "max-age=15552000; includeSubDomains"

        if request.url.path.startswith(self.auth_path_prefix):
            # Responses may carry session tokens
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
            response.headers["Pragma"] = "no-cache"

            client_ip = request.client.host if request.client else "unknown"
            user_agent = request.headers.get("user-agent", "unknown")

            logger.info(
                "Auth endpoint accessed",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "ip": client_ip,
                    "user_agent": user_agent[:100],
                    "status_code": response.status_code,
                }
            )

        return response
