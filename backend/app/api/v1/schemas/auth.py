from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field

from app.core.models.profile import UserRole  # noqa: TCH001
from app.core.schemas.auth import AuthUser, SessionInfo  # noqa: TCH001


class SignInRequest(BaseModel):
    """Request to sign in with email and password."""

    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(..., min_length=1, description="User's password")


class SignUpRequest(BaseModel):
    """Request to sign up with email and password."""

    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(..., min_length=6, description="User's password")
    full_name: str | None = Field(default=None, max_length=255, description="Display name")
    role: UserRole | None = Field(default=None, description="Requested role, defaults to 'user'")


class PasswordResetRequest(BaseModel):
    """Request a password recovery email."""

    email: EmailStr = Field(..., description="Account email address")


class PasswordUpdateRequest(BaseModel):
    """Set a new password for the signed-in user."""

    password: str = Field(..., min_length=6, description="New password")


class AuthResponse(BaseModel):
    """Response containing the user (with profile) and, when established, the session."""

    user: AuthUser | None = Field(default=None, description="User with profile data")
    session: SessionInfo | None = Field(
        default=None,
        description="Session tokens; null when email confirmation is pending",
    )


class MessageResponse(BaseModel):
    message: str
