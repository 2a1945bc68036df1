# src/brewhub_dm/models/conversation.py
"""Models describing two-person conversations and their members."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from brewhub_dm.db.session import Base
from brewhub_dm.db.time import utcnow
from brewhub_dm.models.user import new_id

CONVERSATION_TYPE_DIRECT = "direct"


class Conversation(Base):
    """Pairing of exactly two members, unique per unordered pair."""

    __tablename__ = "dm_conversations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    conversation_type: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=CONVERSATION_TYPE_DIRECT,
    )
    # "<smaller id>:<larger id>"; the unique index closes creation races.
    direct_key: Mapped[str] = mapped_column(String(80), nullable=False, unique=True)
    created_by: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id"), nullable=False)

    last_message_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    last_message_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
    )

    participants: Mapped[list[Participant]] = relationship(
        "Participant",
        back_populates="conversation",
        cascade="all, delete-orphan",
    )


class Participant(Base):
    """Per-member state inside a conversation (read receipts, archival)."""

    __tablename__ = "dm_participants"

    conversation_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("dm_conversations.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        primary_key=True,
    )
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    last_read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_seen_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # NULL = active in the member's inbox.
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    conversation: Mapped[Conversation] = relationship("Conversation", back_populates="participants")

    __table_args__ = (
        Index("ix_dm_participants_user_archived", "user_id", "archived_at"),
    )
