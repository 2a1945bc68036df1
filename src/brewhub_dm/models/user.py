# src/brewhub_dm/models/user.py
"""Profile rows resolved by the identity layer."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from brewhub_dm.db.session import Base
from brewhub_dm.db.time import utcnow

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLE_SUPERUSER = "superuser"

STATUS_ACTIVE = "active"
STATUS_BLOCKED = "blocked"
STATUS_DISABLED = "disabled"

DM_PRIVACY_EVERYONE = "everyone"
DM_PRIVACY_VERIFIED_ONLY = "verified_only"
DM_PRIVACY_NOBODY = "nobody"


def new_id() -> str:
    """Return a fresh string identifier."""
    return str(uuid.uuid4())


class Profile(Base):
    """Community member as seen by the messaging subsystem."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    display_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    role: Mapped[str] = mapped_column(String(16), nullable=False, default=ROLE_USER)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_ACTIVE)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # everyone | verified_only | nobody
    dm_privacy: Mapped[str] = mapped_column(String(16), nullable=False, default=DM_PRIVACY_EVERYONE)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    @property
    def is_active(self) -> bool:
        """Return True when the account may use messaging."""
        return self.status == STATUS_ACTIVE

    @property
    def public_name(self) -> str:
        """Return the name shown to other members."""
        name = (self.display_name or "").strip()
        return name or self.email or "Unknown User"
