from __future__ import annotations

from enum import Enum
from uuid import UUID, uuid4

from pydantic import Field, field_validator

from .base import AppBaseModel, TimestampedModel


class UserRole(str, Enum):
    """Access tier stored in ``profiles.role``; mirrors the ``user_role`` enum."""

    USER = "user"
    ADMIN = "admin"
    INSTRUCTOR = "instructor"


class Profile(TimestampedModel):
    """Application-owned row linked one-to-one with a provider user."""

    id: UUID = Field(..., description="Same id as the owning auth user")
    email: str = Field(..., description="Denormalised copy of the user's email")
    full_name: str | None = Field(default=None, description="Display name")
    avatar_url: str | None = Field(default=None, description="Avatar image URL")
    role: UserRole = Field(default=UserRole.USER, description="Access tier")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "id": str(uuid4()),
                    "email": "ada@example.com",
                    "full_name": "Ada Lovelace",
                    "avatar_url": None,
                    "role": "instructor",
                }
            ]
        }
    }


class ProfileCreate(AppBaseModel):
    """Row inserted right after a successful sign-up."""

    id: UUID
    email: str
    full_name: str | None = None
    role: UserRole = UserRole.USER


class ProfileUpdate(AppBaseModel):
    """Fields a user may change on their own profile."""

    full_name: str | None = Field(default=None, max_length=255)
    avatar_url: str | None = Field(default=None, max_length=2048)

    @field_validator("full_name", "avatar_url")
    @classmethod
    def strip_blank(cls, v: str | None) -> str | None:
        if v is None:
            return v
        stripped = v.strip()
        return stripped or None


class AdminProfileUpdate(ProfileUpdate):
    """Fields an admin may change on any profile."""

    role: UserRole | None = None
