from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from app.config import settings
from app.core.exceptions import (
    AuthValidationError,
    NotAuthenticatedError,
    ProfileNotFoundError,
    ProfileQueryError,
    ProviderAuthError,
)
from app.core.models.base import utc_now_iso
from app.core.models.profile import ProfileCreate, UserRole
from app.core.repositories.implementations.supabase.profile_repository import (
    SupabaseProfileRepository,
)
from app.core.schemas.auth import AuthResult, AuthUser, SessionInfo
from app.utils.logging import get_logger
from app.utils.validation import normalize_email, validate_password_strength

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from uuid import UUID

    from app.api.v1.schemas.auth import SignInRequest, SignUpRequest
    from app.core.models.profile import AdminProfileUpdate, Profile, ProfileUpdate
    from app.core.repositories.profile_repository import ProfileRepository


logger = get_logger(__name__)


def _error_summary(err: BaseException) -> str:
    error_msg = str(err).lower()
    return error_msg[:100] if error_msg else "Unknown error"


class AuthService:
    """Authentication service wrapping Supabase auth plus the profiles table.

    Every call runs the blocking supabase-py client in a worker thread. Provider
    errors are re-raised as ``ProviderAuthError`` with the provider message intact.
    """

    def __init__(
        self,
        supabase_client: Any,
        profiles: ProfileRepository | None = None,
        *,
        password_reset_redirect_url: str | None = None,
    ):
        self.supabase = supabase_client
        self.profiles = profiles if profiles is not None else SupabaseProfileRepository(supabase_client)
        self.password_reset_redirect_url = (
            password_reset_redirect_url or settings.reset_password_redirect
        )

    async def sign_up(self, payload: SignUpRequest) -> AuthResult:
        """Create the provider account, then the matching profile row.

        The profile insert is not transactional with the sign-up: if it fails the
        account still exists, the error is logged and the next sign-in repairs it.
        """
        is_valid_password, password_error = validate_password_strength(payload.password)
        if not is_valid_password:
            raise AuthValidationError(password_error, code="weak_password")

        email = normalize_email(payload.email)
        role = UserRole(payload.role) if payload.role else UserRole.USER
        full_name = (payload.full_name or "").strip() or None

        try:
            resp = await asyncio.to_thread(
                lambda: self.supabase.auth.sign_up({
                    "email": email,
                    "password": payload.password,
                    "options": {
                        "data": {
                            "full_name": full_name,
                            "role": role.value,
                        },
                    },
                })
            )
        except Exception as err:
            logger.warning(
                "Sign up failed",
                extra={
                    "email": email,
                    "error_type": type(err).__name__,
                    "error_summary": _error_summary(err),
                }
            )
            raise ProviderAuthError.from_exception(err) from err

        if not resp.user:
            return AuthResult(user=None, session=SessionInfo.from_provider(resp.session))

        profile = None
        try:
            profile = await self.profiles.create(
                ProfileCreate(
                    id=resp.user.id,
                    email=resp.user.email or email,
                    full_name=full_name,
                    role=role,
                )
            )
        except ProfileQueryError as err:
            logger.error(
                "Profile creation failed after sign up",
                extra={"user_id": str(resp.user.id), "error": err.message},
            )

        logger.info("User signed up successfully", extra={"email": email, "user_id": str(resp.user.id)})

        return AuthResult(
            user=AuthUser.from_provider(resp.user, profile),
            session=SessionInfo.from_provider(resp.session),
        )

    async def sign_in(self, payload: SignInRequest) -> AuthResult:
        """Check credentials with the provider and attach the user's profile."""
        email = normalize_email(payload.email)
        password = payload.password

        if not email or not password:
            raise AuthValidationError("Email and password are required")

        try:
            resp = await asyncio.to_thread(
                lambda: self.supabase.auth.sign_in_with_password({
                    "email": email,
                    "password": password,
                })
            )
        except Exception as err:
            logger.warning(
                "Sign in failed",
                extra={
                    "email": email,
                    "error_type": type(err).__name__,
                    "error_summary": _error_summary(err),
                }
            )
            raise ProviderAuthError.from_exception(err) from err

        if not resp.user or not getattr(resp, "session", None):
            raise ProviderAuthError("Invalid login credentials", status=400, code="invalid_credentials")

        user = await self.get_user_with_profile(resp.user)
        if user.profile is None:
            user = user.model_copy(update={"profile": await self._restore_profile(resp.user)})

        logger.info("User signed in successfully", extra={"email": email, "user_id": str(user.id)})

        return AuthResult(user=user, session=SessionInfo.from_provider(resp.session))

    async def sign_out(self) -> None:
        """End the current session with the provider."""
        try:
            await asyncio.to_thread(lambda: self.supabase.auth.sign_out())
        except Exception as err:
            logger.warning("Sign out failed", extra={"error_summary": _error_summary(err)})
            raise ProviderAuthError.from_exception(err) from err
        logger.info("User signed out successfully")

    async def get_current_session(self) -> SessionInfo | None:
        """Return the session the client currently holds, or None."""
        try:
            session = await asyncio.to_thread(lambda: self.supabase.auth.get_session())
        except Exception as err:
            logger.warning("Session retrieval failed", extra={"error_summary": _error_summary(err)})
            raise ProviderAuthError.from_exception(err) from err
        return SessionInfo.from_provider(session)

    async def get_current_user(self) -> AuthUser | None:
        """Return the signed-in user with profile, or None when there is none."""
        try:
            resp = await asyncio.to_thread(lambda: self.supabase.auth.get_user())
        except Exception as err:
            logger.warning("Get user failed", extra={"error_summary": _error_summary(err)})
            return None

        user = getattr(resp, "user", None)
        if not user or not getattr(user, "id", None):
            return None
        return await self.get_user_with_profile(user)

    async def get_user_with_profile(self, user: Any) -> AuthUser:
        """Join a provider user with its profile; a failed lookup leaves ``profile`` unset."""
        try:
            profile = await self.profiles.get(user.id)
        except ProfileQueryError as err:
            logger.error("Profile fetch failed", extra={"user_id": str(user.id), "error": err.message})
            profile = None
        return AuthUser.from_provider(user, profile)

    async def _restore_profile(self, user: Any) -> Profile | None:
        """Recreate a profile missing after a sign-up whose insert failed."""
        metadata = getattr(user, "user_metadata", None) or {}
        try:
            role = UserRole(metadata.get("role") or UserRole.USER)
        except ValueError:
            role = UserRole.USER
        try:
            profile = await self.profiles.create(
                ProfileCreate(
                    id=user.id,
                    email=getattr(user, "email", None) or "",
                    full_name=metadata.get("full_name") or None,
                    role=role,
                )
            )
        except ProfileQueryError as err:
            logger.error("Profile repair failed", extra={"user_id": str(user.id), "error": err.message})
            return None
        if profile is not None:
            logger.info("Restored missing profile", extra={"user_id": str(user.id)})
        return profile

    async def _require_user(self) -> AuthUser:
        user = await self.get_current_user()
        if user is None:
            raise NotAuthenticatedError()
        return user

    async def update_profile(self, updates: ProfileUpdate) -> Profile:
        """Update the signed-in user's own profile."""
        user = await self._require_user()

        changes = updates.model_dump(exclude_unset=True, include={"full_name", "avatar_url"})
        changes["updated_at"] = utc_now_iso()

        profile = await self.profiles.update_fields(user.id, changes)
        if profile is None:
            raise ProfileNotFoundError(code="profile_not_found")
        logger.info("Profile updated", extra={"user_id": str(user.id), "fields": sorted(changes)})
        return profile

    async def reset_password(self, email: str) -> None:
        """Send the provider's password recovery email."""
        address = normalize_email(email)
        try:
            await asyncio.to_thread(
                lambda: self.supabase.auth.reset_password_for_email(
                    address,
                    {"redirect_to": self.password_reset_redirect_url},
                )
            )
        except Exception as err:
            logger.warning(
                "Password reset failed",
                extra={"email": address, "error_summary": _error_summary(err)},
            )
            raise ProviderAuthError.from_exception(err) from err

    async def update_password(self, new_password: str) -> None:
        """Set a new password for the signed-in user."""
        is_valid_password, password_error = validate_password_strength(new_password)
        if not is_valid_password:
            raise AuthValidationError(password_error, code="weak_password")

        try:
            await asyncio.to_thread(lambda: self.supabase.auth.update_user({"password": new_password}))
        except Exception as err:
            logger.warning("Password update failed", extra={"error_summary": _error_summary(err)})
            raise ProviderAuthError.from_exception(err) from err

    async def has_role(self, role: UserRole | str) -> bool:
        try:
            user = await self.get_current_user()
            return user is not None and user.has_role(role)
        except (ValueError, ProfileQueryError) as err:
            logger.error("Role check failed", extra={"role": str(role), "error": str(err)})
            return False

    async def is_admin(self) -> bool:
        return await self.has_role(UserRole.ADMIN)

    def on_auth_state_change(self, callback: Callable[[Any, Any], None]) -> Any:
        """Register ``callback(event, session)``; returns a subscription with ``unsubscribe()``."""
        return self.supabase.auth.on_auth_state_change(callback)

    # Profile administration; visibility is decided by the admin policies

    async def get_profile(self, user_id: UUID) -> Profile:
        await self._require_user()
        profile = await self.profiles.get(user_id)
        if profile is None:
            raise ProfileNotFoundError(code="profile_not_found")
        return profile

    async def list_profiles(
        self,
        *,
        limit: int = 50,
        offset: int = 0,
        role: UserRole | None = None,
    ) -> Sequence[Profile]:
        await self._require_user()
        return await self.profiles.list(limit=limit, offset=offset, role=role)

    async def update_profile_by_id(self, user_id: UUID, updates: AdminProfileUpdate) -> Profile:
        """Update any profile; rows the caller may not update surface as not found."""
        caller = await self._require_user()

        changes = updates.model_dump(exclude_unset=True)
        if changes.get("role") is None:
            changes.pop("role", None)
        changes["updated_at"] = utc_now_iso()

        profile = await self.profiles.update_fields(user_id, changes)
        if profile is None:
            logger.warning(
                "Profile update matched no row",
                extra={"caller_id": str(caller.id), "target_id": str(user_id)},
            )
            raise ProfileNotFoundError("Profile not found or not accessible", code="profile_not_found")
        logger.info(
            "Profile updated by another user",
            extra={"caller_id": str(caller.id), "target_id": str(user_id), "fields": sorted(changes)},
        )
        return profile
