"""Block-list schemas."""

from pydantic import BaseModel

from .common import ProfileSnapshot, UtcDatetime


class BlockedUser(BaseModel):
    """A member the caller has blocked."""

    id: str
    created_at: UtcDatetime
    profile: ProfileSnapshot | None


class BlockListResponse(BaseModel):
    """Members blocked by the caller, newest first."""

    blocked_users: list[BlockedUser]
