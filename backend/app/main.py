from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from .api.errors import register_exception_handlers
from .api.middleware.security import SecurityMiddleware
from .api.v1.router import api_router
from .config import settings
from .utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    logger.info(
        "Starting Profile Auth API",
        extra={"supabase_url": settings.supabase_url, "api_prefix": settings.api_prefix},
    )
    if not settings.supabase_service_role_key:
        logger.warning("No service role key configured; readiness checks run with the anon key")
    yield
    logger.info("Shutting down Profile Auth API")


def create_app() -> FastAPI:
    setup_logging()

    app = FastAPI(
        title="Profile Auth API",
        description="Supabase sign-in with role-bearing user profiles",
        debug=settings.debug,
        version="0.1.0",
        root_path=settings.root_path or "",
        lifespan=lifespan,
    )
    register_exception_handlers(app)

    # Bearer tokens travel in the Authorization header, never in cookies
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_origin_regex=settings.cors_origin_regex,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept"],
        expose_headers=["Retry-After", "RateLimit-Limit", "RateLimit-Remaining", "RateLimit-Reset"],
        max_age=600,
    )
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.trusted_hosts)
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(SecurityMiddleware, auth_path_prefix=f"{settings.api_prefix}/auth")

    app.include_router(api_router, prefix=settings.api_prefix)
    return app


app = create_app()
