from __future__ import annotations

import asyncio

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from app.config import settings
from app.db.base import create_request_supabase_client, get_supabase_admin_client

router = APIRouter()

SERVICE_NAME = "profile-auth-api"
SERVICE_VERSION = "0.1.0"


@router.get("/")
async def health_check():
    """Health check endpoint."""
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={
            "status": "healthy",
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
        }
    )


@router.get("/ready")
async def readiness_check():
    """Readiness check: the profiles table answers through PostgREST."""
    db_status = "connected"
    try:
        client = get_supabase_admin_client() if settings.supabase_service_role_key else create_request_supabase_client()
        await asyncio.to_thread(lambda: client.table("profiles").select("id").limit(1).execute())
    except Exception as e:
        db_status = f"error: {str(e)}"

    ready = db_status == "connected"
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if ready else "degraded",
            "database": db_status,
            "auth_provider": settings.supabase_url,
            "api_prefix": settings.api_prefix,
        }
    )
