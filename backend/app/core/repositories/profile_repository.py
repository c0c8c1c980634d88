from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from app.core.models.profile import Profile, ProfileCreate, UserRole


class ProfileRepository(ABC):
    """Abstract repository interface for profiles.

    Row visibility is decided by the database policies of the connection the
    implementation uses, so a row hidden by policy looks the same as a missing one.
    """

    @abstractmethod
    async def create(self, profile: ProfileCreate) -> Profile | None:  # pragma: no cover - interface only
        """Insert a profile; return None if a row with that id already exists."""

    @abstractmethod
    async def get(self, user_id: UUID) -> Profile | None:  # pragma: no cover
        """Fetch a profile by user id or return None if not visible."""

    @abstractmethod
    async def list(
        self,
        *,
        limit: int = 50,
        offset: int = 0,
        role: UserRole | None = None,
    ) -> Sequence[Profile]:  # pragma: no cover
        """Return visible profiles, newest first."""

    @abstractmethod
    async def update_fields(self, user_id: UUID, changes: dict) -> Profile | None:  # pragma: no cover
        """Partially update a profile and return it, or None if no row was updated."""
