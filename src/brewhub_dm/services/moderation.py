"""Moderation services for direct messages."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from brewhub_dm.core.settings import settings
from brewhub_dm.db.time import utcnow
from brewhub_dm.models import Message, MessageReport, Participant, Profile
from brewhub_dm.models.report import (
    REPORT_LOCKING_STATUSES,
    REPORT_STATUS_OPEN,
    REPORT_TERMINAL_STATUSES,
)
from brewhub_dm.models.user import ROLE_SUPERUSER
from brewhub_dm.schemas import (
    MessageResponse,
    ProfileSnapshot,
    ReportContextResponse,
    ReportParticipant,
    ReportResponse,
)
from brewhub_dm.services.access import AccessControl
from brewhub_dm.services.audit import record_moderation_action
from brewhub_dm.services.errors import (
    AccessDeniedError,
    ConflictError,
    NotFoundError,
    ValidationFailedError,
)
from brewhub_dm.services.rate_limit import require_quota

logger = logging.getLogger(__name__)

REPORT_QUOTA_SCOPE = "dm:report"
REPORTS_ENDPOINT = "/api/v1/messages/reports"


class ReportService:
    """Report submission for members and the review queue for superusers."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.access = AccessControl(db)

    def find_active_report(
        self,
        reporter_id: str,
        conversation_id: str,
        message_id: str,
    ) -> MessageReport | None:
        """Return the reporter's open or resolved report on a message, if any."""
        stmt = (
            select(MessageReport)
            .where(
                MessageReport.reporter_id == reporter_id,
                MessageReport.conversation_id == conversation_id,
                MessageReport.message_id == message_id,
                MessageReport.status.in_(REPORT_LOCKING_STATUSES),
            )
            .order_by(MessageReport.created_at.asc())
            .limit(1)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def submit_report(
        self,
        reporter_id: str,
        conversation_id: str,
        message_id: str,
        reason: str,
        detail: str | None = None,
        now_ms: int | None = None,
    ) -> tuple[MessageReport, bool]:
        """File a report, returning ``(report, created)``.

        A repeat submission returns the reporter's existing open or resolved
        report for the same message instead of inserting a duplicate.
        """
        self.access.require_participant(reporter_id, conversation_id)

        message = self.db.get(Message, message_id)
        if message is None or message.conversation_id != conversation_id:
            raise NotFoundError("Message not found")

        existing = self.find_active_report(reporter_id, conversation_id, message_id)
        if existing is not None:
            return existing, False

        require_quota(
            self.db,
            scope=REPORT_QUOTA_SCOPE,
            identifier=reporter_id,
            endpoint=REPORTS_ENDPOINT,
            method="POST",
            limit=settings.dm_report_rate_limit,
            window_seconds=settings.dm_report_rate_window_seconds,
            detail="Too many reports submitted. Try again later.",
            now_ms=now_ms,
        )

        reason = reason.strip()
        if not reason:
            raise ValidationFailedError("Invalid payload", "A reason is required.")

        report = MessageReport(
            reporter_id=reporter_id,
            conversation_id=conversation_id,
            message_id=message_id,
            reason=reason,
            detail=(detail or "").strip() or None,
            status=REPORT_STATUS_OPEN,
        )
        self.db.add(report)
        self.db.commit()
        logger.info("Report %s filed on message %s", report.id, message_id)
        return report, True

    @staticmethod
    def require_reviewer(reviewer: Profile) -> None:
        """Only superusers may see or change reports."""
        if reviewer.role != ROLE_SUPERUSER:
            raise AccessDeniedError("Forbidden")

    def review_queue(
        self,
        reviewer: Profile,
        *,
        status: str | None = None,
        limit: int | None = None,
    ) -> list[ReportResponse]:
        """Return reports newest first, optionally filtered by status."""
        self.require_reviewer(reviewer)
        stmt = select(MessageReport)
        if status:
            stmt = stmt.where(MessageReport.status == status)
        stmt = stmt.order_by(MessageReport.created_at.desc()).limit(limit or settings.dm_report_queue_limit)
        return [ReportResponse.model_validate(report) for report in self.db.execute(stmt).scalars()]

    def update_status(
        self,
        reviewer: Profile,
        report_id: str,
        status: str,
        resolution_note: str | None = None,
    ) -> MessageReport:
        """Close an open report as resolved or dismissed."""
        self.require_reviewer(reviewer)
        if status not in REPORT_TERMINAL_STATUSES:
            raise ValidationFailedError("Invalid report update payload", f"Unsupported status: {status}")

        report = self.db.get(MessageReport, report_id)
        if report is None:
            raise NotFoundError("Report not found")
        if report.status != REPORT_STATUS_OPEN:
            raise ConflictError("Could not update report", f"Report is already {report.status}.")

        now = utcnow()
        previous = report.status
        report.status = status
        report.resolution_note = (resolution_note or "").strip() or None
        report.assignee_id = reviewer.id
        report.updated_at = now
        report.resolved_at = now
        self.db.commit()

        record_moderation_action(
            self.db,
            actor_id=reviewer.id,
            action="report.update",
            report_id=report.id,
            metadata={"from": previous, "to": status},
        )
        return report

    def context_fetch(self, reviewer: Profile, report_id: str) -> ReportContextResponse:
        """Return the reported conversation's members and history for review."""
        self.require_reviewer(reviewer)
        report = self.db.get(MessageReport, report_id)
        if report is None:
            raise NotFoundError("Report not found")

        rows = self.db.execute(
            select(Participant, Profile)
            .outerjoin(Profile, Profile.id == Participant.user_id)
            .where(Participant.conversation_id == report.conversation_id)
            .order_by(Participant.joined_at.asc())
        ).all()

        messages = self.db.execute(
            select(Message)
            .where(Message.conversation_id == report.conversation_id)
            .order_by(Message.created_at.asc())
            .limit(settings.dm_context_message_limit)
        ).scalars().all()

        record_moderation_action(
            self.db,
            actor_id=reviewer.id,
            action="report.context_view",
            report_id=report.id,
            metadata={"conversation_id": report.conversation_id, "message_count": len(messages)},
        )

        return ReportContextResponse(
            report=ReportResponse.model_validate(report),
            participants=[
                ReportParticipant(
                    user_id=participant.user_id,
                    joined_at=participant.joined_at,
                    profile=ProfileSnapshot.from_profile(profile) if profile is not None else None,
                )
                for participant, profile in rows
            ],
            messages=[MessageResponse.from_model(message) for message in messages],
        )
