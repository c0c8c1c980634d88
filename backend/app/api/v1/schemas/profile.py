from __future__ import annotations

from pydantic import BaseModel, Field

from app.core.models.profile import Profile  # noqa: TCH001


class ProfileListResponse(BaseModel):
    """A page of profiles, newest first."""

    items: list[Profile] = Field(default_factory=list)
    limit: int
    offset: int
