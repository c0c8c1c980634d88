from __future__ import annotations

from uuid import UUID  # noqa: TCH003

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.v1.schemas.profile import ProfileListResponse
from app.core.models.profile import AdminProfileUpdate, Profile, ProfileUpdate, UserRole
from app.core.schemas.auth import AuthUser  # noqa: TCH001
from app.core.services.auth_service import AuthService  # noqa: TCH001
from app.dependencies import get_current_user, get_user_auth_service, require_admin

router = APIRouter()


@router.get("/me", response_model=Profile)
async def read_own_profile(current_user: AuthUser = Depends(get_current_user)):
    """Return the caller's profile."""
    if current_user.profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return current_user.profile


@router.patch("/me", response_model=Profile)
async def update_own_profile(
    payload: ProfileUpdate,
    auth_service: AuthService = Depends(get_user_auth_service),
):
    """Update the caller's display name or avatar."""
    return await auth_service.update_profile(payload)


@router.get("", response_model=ProfileListResponse)
async def list_profiles(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    role: UserRole | None = Query(None),
    _admin: AuthUser = Depends(require_admin),
    auth_service: AuthService = Depends(get_user_auth_service),
):
    """List all profiles (admins only)."""
    items = await auth_service.list_profiles(limit=limit, offset=offset, role=role)
    return ProfileListResponse(items=list(items), limit=limit, offset=offset)


@router.get("/{user_id}", response_model=Profile)
async def read_profile(
    user_id: UUID,
    auth_service: AuthService = Depends(get_user_auth_service),
):
    """Return a profile the caller is allowed to see (their own, or any for admins)."""
    return await auth_service.get_profile(user_id)


@router.patch("/{user_id}", response_model=Profile)
async def update_profile(
    user_id: UUID,
    payload: AdminProfileUpdate,
    _admin: AuthUser = Depends(require_admin),
    auth_service: AuthService = Depends(get_user_auth_service),
):
    """Update any profile, including its role (admins only)."""
    return await auth_service.update_profile_by_id(user_id, payload)
