from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.v1.schemas.auth import (
    AuthResponse,
    MessageResponse,
    PasswordResetRequest,
    PasswordUpdateRequest,
    SignInRequest,
    SignUpRequest,
)
from app.config import settings
from app.core.models.profile import UserRole
from app.core.schemas.auth import AuthUser, SessionInfo
from app.core.services.auth_service import AuthService  # noqa: TCH001
from app.dependencies import (
    get_auth_service,
    get_current_user,
    get_user_auth_service,
    rate_limited,
)

# AuthError raised by the service is rendered by the app's exception handler
router = APIRouter(
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Forbidden"},
        429: {"description": "Too many requests"}
    }
)


@router.post(
    "/signup",
    response_model=AuthResponse,
    dependencies=[Depends(rate_limited("signup"))],
)
async def sign_up_with_password(
    payload: SignUpRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Sign up with email and password; the profile row is created alongside."""
    requested = payload.role or UserRole.USER
    if requested.value not in settings.self_assignable_roles:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Role '{requested.value}' cannot be chosen at sign up",
        )
    result = await auth_service.sign_up(payload)
    return AuthResponse(user=result.user, session=result.session)


@router.post(
    "/signin",
    response_model=AuthResponse,
    dependencies=[Depends(rate_limited("signin"))],
)
async def sign_in_with_password(
    payload: SignInRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Sign in with email and password."""
    result = await auth_service.sign_in(payload)
    return AuthResponse(user=result.user, session=result.session)


@router.post("/signout", response_model=MessageResponse)
async def sign_out(auth_service: AuthService = Depends(get_user_auth_service)):
    """Revoke the bearer's session."""
    await auth_service.sign_out()
    return MessageResponse(message="Signed out successfully")


@router.get("/session", response_model=SessionInfo)
async def get_session(auth_service: AuthService = Depends(get_user_auth_service)):
    """Return the session established from the bearer token."""
    session = await auth_service.get_current_session()
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No active session found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session


@router.get("/me", response_model=AuthUser)
async def read_current_user(current_user: AuthUser = Depends(get_current_user)):
    """Return the signed-in user with profile data."""
    return current_user


@router.post(
    "/password/reset",
    response_model=MessageResponse,
    dependencies=[Depends(rate_limited("password_reset"))],
)
async def request_password_reset(
    payload: PasswordResetRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Send a password recovery email."""
    await auth_service.reset_password(payload.email)
    return MessageResponse(message="If the account exists, a password reset email has been sent")


@router.post("/password/update", response_model=MessageResponse)
async def update_password(
    payload: PasswordUpdateRequest,
    auth_service: AuthService = Depends(get_user_auth_service),
):
    """Set a new password for the signed-in user."""
    await auth_service.update_password(payload.password)
    return MessageResponse(message="Password updated successfully")
