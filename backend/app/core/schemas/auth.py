from __future__ import annotations

from typing import Any
from uuid import UUID  # noqa: TCH003

from pydantic import ConfigDict, Field

from app.core.models.base import AppBaseModel
from app.core.models.profile import Profile, UserRole


class AuthUser(AppBaseModel):
    """Provider user joined with the matching profile row."""

    model_config = ConfigDict(extra="ignore")

    id: UUID
    email: str
    user_metadata: dict[str, Any] = Field(default_factory=dict)
    profile: Profile | None = None

    @classmethod
    def from_provider(cls, user: Any, profile: Profile | None = None) -> AuthUser:
        """Build from a supabase ``User`` object, attaching ``profile`` if given."""
        return cls(
            id=user.id,
            email=getattr(user, "email", None) or "",
            user_metadata=dict(getattr(user, "user_metadata", None) or {}),
            profile=profile,
        )

    @property
    def role(self) -> UserRole | None:
        return self.profile.role if self.profile else None

    @property
    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN

    def has_role(self, role: UserRole | str) -> bool:
        return self.role is not None and self.role == UserRole(role)


class SessionInfo(AppBaseModel):
    """Token bundle issued by the provider."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: str | None = None
    token_type: str = "bearer"
    expires_in: int | None = None
    expires_at: int | None = None

    @classmethod
    def from_provider(cls, session: Any) -> SessionInfo | None:
        if session is None or not getattr(session, "access_token", None):
            return None
        return cls(
            access_token=session.access_token,
            refresh_token=getattr(session, "refresh_token", None),
            token_type=getattr(session, "token_type", None) or "bearer",
            expires_in=getattr(session, "expires_in", None),
            expires_at=getattr(session, "expires_at", None),
        )


class AuthResult(AppBaseModel):
    """Outcome of sign-up or sign-in.

    ``session`` is ``None`` after a sign-up that still awaits email confirmation.
    """

    user: AuthUser | None = None
    session: SessionInfo | None = None


class AuthState(AppBaseModel):
    """Immutable snapshot published by ``SessionContext``."""

    model_config = ConfigDict(frozen=True)

    user: AuthUser | None = None
    session: SessionInfo | None = None
    loading: bool = True
    is_admin: bool = False
