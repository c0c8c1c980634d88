from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from app.core.exceptions import ProfileQueryError
from app.core.models.profile import Profile, ProfileCreate, UserRole
from app.core.repositories.profile_repository import ProfileRepository
from app.utils.logging import get_logger

logger = get_logger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from uuid import UUID

    from supabase import Client


class SupabaseProfileRepository(ProfileRepository):
    """Supabase implementation of the ProfileRepository.

    Talks to the ``profiles`` table through PostgREST. Which rows are visible or
    writable depends on the bearer the client carries (see the RLS policies in
    ``supabase/migrations``).
    """

    TABLE_NAME = "profiles"
    WRITABLE_FIELDS = frozenset({"full_name", "avatar_url", "role", "updated_at"})

    def __init__(self, client: Client) -> None:
        self._client: Client = client

    async def create(self, profile: ProfileCreate) -> Profile | None:
        row = self._profile_to_row(profile)
        # The signup trigger may already have created the row; keep it untouched
        resp = await self._run(
            lambda: self._client.table(self.TABLE_NAME)
            .upsert(row, on_conflict="id", ignore_duplicates=True)
            .execute()
        )
        items = resp.data or []
        if not items:
            return None
        return self._row_to_profile(items[0])

    async def get(self, user_id: UUID) -> Profile | None:
        resp = await self._run(
            lambda: self._client.table(self.TABLE_NAME)
            .select("*")
            .eq("id", str(user_id))
            .limit(1)
            .execute()
        )
        items = resp.data or []
        if not items:
            return None
        return self._row_to_profile(items[0])

    async def list(
        self,
        *,
        limit: int = 50,
        offset: int = 0,
        role: UserRole | None = None,
    ) -> Sequence[Profile]:
        def _query():
            q = self._client.table(self.TABLE_NAME).select("*")
            if role is not None:
                q = q.eq("role", UserRole(role).value)
            return (
                q
                .order("created_at", desc=True)
                .range(offset, offset + limit - 1)
                .execute()
            )

        resp = await self._run(_query)
        items = resp.data or []
        return [self._row_to_profile(i) for i in items]

    async def update_fields(self, user_id: UUID, changes: dict) -> Profile | None:
        sanitized: dict[str, Any] = {
            k: (v.value if isinstance(v, UserRole) else v)
            for k, v in (changes or {}).items()
            if k in self.WRITABLE_FIELDS
        }
        if not sanitized:
            return await self.get(user_id)

        resp = await self._run(
            lambda: self._client.table(self.TABLE_NAME)
            .update(sanitized)
            .eq("id", str(user_id))
            .execute()
        )
        items = resp.data or []
        if not items:
            return None
        return self._row_to_profile(items[0])

    @staticmethod
    async def _run(func: Callable[[], Any]) -> Any:
        try:
            return await asyncio.to_thread(func)
        except Exception as err:
            logger.warning(
                "Profile query failed",
                extra={
                    "error_type": type(err).__name__,
                    "error_summary": str(err)[:100],
                },
            )
            raise ProfileQueryError.from_exception(err) from err

    @staticmethod
    def _row_to_profile(row: dict[str, Any]) -> Profile:
        # Ignore columns added to the table later that the model does not know yet
        known = {k: v for k, v in row.items() if k in Profile.model_fields}
        return Profile.model_validate(known)

    @staticmethod
    def _profile_to_row(profile: ProfileCreate) -> dict[str, Any]:
        data = profile.model_dump(mode="json")
        data["id"] = str(profile.id)
        return data
