# src/brewhub_dm/models/block.py
"""Directional block relation between two members."""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from brewhub_dm.db.session import Base
from brewhub_dm.db.time import utcnow


class UserBlock(Base):
    """Record that ``blocker_id`` no longer wants contact with ``blocked_id``."""

    __tablename__ = "user_blocks"

    blocker_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        primary_key=True,
    )
    blocked_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        primary_key=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        CheckConstraint("blocker_id <> blocked_id", name="ck_user_blocks_not_self"),
    )
