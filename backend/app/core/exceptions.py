"""Errors raised by the auth and profile layer.

Errors are classified by where they come from: the hosted auth provider,
the ``profiles`` table, or local checks made before anything is sent.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every error surfaced by the auth service."""

    default_message = "Authentication error"

    def __init__(
        self,
        message: str | None = None,
        *,
        status: int | None = None,
        code: str | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.status = status
        self.code = code
        super().__init__(self.message)

    @classmethod
    def from_exception(cls, err: BaseException) -> AuthError:
        """Wrap an SDK exception, keeping its message, status and code."""
        status = getattr(err, "status", None)
        code = getattr(err, "code", None)
        return cls(
            str(getattr(err, "message", None) or err) or None,
            status=status if isinstance(status, int) else None,
            code=str(code) if code is not None else None,
        )


class ProviderAuthError(AuthError):
    """The auth provider rejected the request (bad credentials, rate limit, unconfirmed email...)."""

    default_message = "Authentication provider error"


class ProfileQueryError(AuthError):
    """A read or write against the profiles table failed."""

    default_message = "Profile query failed"


class ProfileNotFoundError(ProfileQueryError):
    """No profile row was visible to the caller; either missing or hidden by policy."""

    default_message = "Profile not found"


class NotAuthenticatedError(AuthError):
    """A profile operation was attempted without a signed-in user."""

    default_message = "No authenticated user"


class AuthValidationError(AuthError):
    """Input rejected locally before reaching the provider."""

    default_message = "Invalid request"
