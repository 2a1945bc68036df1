# src/brewhub_dm/models/report.py
"""Abuse reports filed against individual messages."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from brewhub_dm.db.session import Base
from brewhub_dm.db.time import utcnow
from brewhub_dm.models.user import new_id

REPORT_STATUS_OPEN = "open"
REPORT_STATUS_RESOLVED = "resolved"
REPORT_STATUS_DISMISSED = "dismissed"

# Reports in these states lock the message against deletion and count for dedup.
REPORT_LOCKING_STATUSES = (REPORT_STATUS_OPEN, REPORT_STATUS_RESOLVED)
REPORT_TERMINAL_STATUSES = (REPORT_STATUS_RESOLVED, REPORT_STATUS_DISMISSED)


class MessageReport(Base):
    """State machine for a single report: open -> resolved | dismissed."""

    __tablename__ = "dm_reports"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    reporter_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id"), nullable=False)
    conversation_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("dm_conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    # Nulled once a dismissed report's message is deleted by its author.
    message_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("dm_messages.id", ondelete="SET NULL"),
        nullable=True,
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    detail: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=REPORT_STATUS_OPEN)

    assignee_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("profiles.id"), nullable=True)
    resolution_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("ix_dm_reports_dedup", "reporter_id", "conversation_id", "message_id", "status"),
        Index("ix_dm_reports_message_status", "message_id", "status"),
    )
