from __future__ import annotations

from app.config import settings

WEAK_PASSWORDS = frozenset({"password", "123456", "1234567", "12345678", "qwerty", "admin", "test", "password123"})


def validate_password_strength(password: str, min_length: int | None = None) -> tuple[bool, str | None]:
    """Validate password strength."""
    required = settings.min_password_length if min_length is None else min_length
    if len(password) < required:
        return False, f"Password must be at least {required} characters long"

    if password.lower() in WEAK_PASSWORDS:
        return False, "Password is too weak. Please choose a stronger password."
    return True, None


def normalize_email(email: str) -> str:
    """Lowercase and trim an email address before sending it to the provider."""
    return email.lower().strip()
