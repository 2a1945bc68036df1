"""Shared Pydantic schemas for common API elements."""
from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, Field

from brewhub_dm.db.time import as_utc
from brewhub_dm.models import Profile

# Timestamps read back from SQLite are naive; every stored value is UTC.
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class ErrorResponse(BaseModel):
    """Error envelope returned for every failed request."""

    error: str = Field(..., description="Human-readable error class.")
    details: str | None = Field(None, description="Optional explanation.")


class SuccessResponse(BaseModel):
    """Minimal acknowledgement for mutations without a payload."""

    success: bool = True


class ProfileSnapshot(BaseModel):
    """Public view of a member shown next to conversations and messages."""

    id: str
    display_name: str
    email: str | None
    avatar_url: str | None
    is_verified: bool

    @classmethod
    def from_profile(cls, profile: Profile) -> ProfileSnapshot:
        return cls(
            id=profile.id,
            display_name=profile.public_name,
            email=profile.email,
            avatar_url=profile.avatar_url,
            is_verified=bool(profile.is_verified),
        )
