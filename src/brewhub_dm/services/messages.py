"""Message lifecycle: send, edit inside the window, delete unless reported."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from brewhub_dm.core.settings import settings
from brewhub_dm.db.time import as_utc, utcnow
from brewhub_dm.models import Message, MessageAttachment, MessageReport, Participant, Profile
from brewhub_dm.models.report import REPORT_LOCKING_STATUSES
from brewhub_dm.models.user import new_id
from brewhub_dm.schemas import MessageListResponse, MessageResponse, ParticipantState, ProfileSnapshot
from brewhub_dm.services.access import AccessControl
from brewhub_dm.services.conversations import ConversationService
from brewhub_dm.services.errors import (
    AccessDeniedError,
    ConflictError,
    NotFoundError,
    ValidationFailedError,
)
from brewhub_dm.services.notifications import EVENT_DIRECT_MESSAGE, NotificationSink
from brewhub_dm.services.rate_limit import require_quota
from brewhub_dm.services.storage import ObjectStorage, StorageError, parse_managed_storage_path
from brewhub_dm.utils.rich_text import (
    discover_image_urls,
    is_suspicious_content,
    sanitize_for_storage,
    to_plain_text,
    validate_plain_text_length,
)

logger = logging.getLogger(__name__)

MESSAGE_QUOTA_SCOPE = "dm:message"
EXTERNAL_PATH_PREFIX = "external-"
DEFAULT_ATTACHMENT_MIME = "image/jpeg"
PREVIEW_CHARS = 140


def can_edit_message(created_at: datetime, now: datetime, window_seconds: int) -> bool:
    """Return True while ``now`` is within ``window_seconds`` of creation."""
    return as_utc(now) - as_utc(created_at) <= timedelta(seconds=window_seconds)


def _length_detail() -> str:
    return f"Message must be between 1 and {settings.dm_message_max_chars} plain-text characters."


class MessageService:
    """Creates, edits, deletes and lists messages of a conversation."""

    def __init__(
        self,
        db: Session,
        storage: ObjectStorage | None = None,
        notifier: NotificationSink | None = None,
    ) -> None:
        self.db = db
        self.storage = storage
        self.notifier = notifier
        self.access = AccessControl(db)
        self.conversations = ConversationService(db, self.access)

    def send_message(
        self,
        sender_id: str,
        conversation_id: str,
        body_html: str | None,
        attachment_urls: list[str] | None = None,
        now_ms: int | None = None,
    ) -> Message:
        """Persist a new message and update the conversation projection."""
        participant = self.access.require_participant(sender_id, conversation_id)

        require_quota(
            self.db,
            scope=MESSAGE_QUOTA_SCOPE,
            identifier=sender_id,
            endpoint=f"/api/v1/messages/conversations/{conversation_id}/messages",
            method="POST",
            limit=settings.dm_message_rate_limit,
            window_seconds=settings.dm_message_rate_window_seconds,
            detail="You are sending messages too quickly. Try again shortly.",
            now_ms=now_ms,
        )

        counterpart_id = self.conversations.get_counterpart_id(conversation_id, sender_id)
        if counterpart_id is not None:
            self.access.require_can_send(sender_id, counterpart_id)

        requested_urls = [url.strip() for url in attachment_urls or [] if url and url.strip()]
        if len(requested_urls) > settings.dm_message_max_attachments:
            raise ValidationFailedError(
                "Invalid payload",
                f"At most {settings.dm_message_max_attachments} attachments are allowed.",
            )

        sanitized = sanitize_for_storage(body_html)
        plain = to_plain_text(sanitized)
        if plain and len(plain) > settings.dm_message_max_chars:
            raise ValidationFailedError("Invalid payload", _length_detail())
        if not plain and not requested_urls:
            raise ValidationFailedError("Invalid payload", "Message requires text or at least one attachment.")
        if plain and is_suspicious_content(sanitized):
            raise ValidationFailedError("Message rejected", "Message content appears suspicious.")

        now = utcnow()
        message = Message(
            id=new_id(),
            conversation_id=conversation_id,
            sender_id=sender_id,
            body_html=sanitized,
            body_text=plain,
            created_at=now,
        )
        media_urls = list(dict.fromkeys([*requested_urls, *discover_image_urls(sanitized)]))
        message.attachments = [self._build_attachment(message.id, url, now) for url in media_urls]
        self.db.add(message)

        participant.last_read_at = now
        participant.last_seen_at = now
        participant.archived_at = None
        self.db.commit()

        self.conversations.refresh_latest(conversation_id)
        if counterpart_id is not None:
            self._notify_counterpart(counterpart_id, sender_id, message)
        return message

    def _build_attachment(self, message_id: str, url: str, created_at: datetime) -> MessageAttachment:
        path = parse_managed_storage_path(url)
        return MessageAttachment(
            message_id=message_id,
            bucket=settings.dm_media_bucket,
            storage_path=path or f"{EXTERNAL_PATH_PREFIX}{message_id}-{secrets.token_hex(3)}",
            public_url=url,
            mime_type=DEFAULT_ATTACHMENT_MIME,
            size_bytes=0,
            attachment_metadata={"external": path is None},
            created_at=created_at,
        )

    def _notify_counterpart(self, recipient_id: str, sender_id: str, message: Message) -> None:
        if self.notifier is None:
            return
        sender = self.db.get(Profile, sender_id)
        preview = message.body_text[:PREVIEW_CHARS] if message.body_text else "Sent an attachment"
        try:
            self.notifier.notify(
                recipient_id,
                EVENT_DIRECT_MESSAGE,
                {
                    "actor_id": sender_id,
                    "title": f"New message from {sender.public_name if sender else 'Unknown User'}",
                    "body": preview,
                    "link_path": f"/messages/{message.conversation_id}",
                    "metadata": {"conversation_id": message.conversation_id, "message_id": message.id},
                },
            )
        except Exception as exc:
            logger.warning("Notification for message %s to %s failed: %s", message.id, recipient_id, exc)

    def _require_message(self, message_id: str) -> Message:
        message = self.db.get(Message, message_id)
        if message is None:
            raise NotFoundError("Message not found")
        return message

    def edit_message(
        self,
        user_id: str,
        message_id: str,
        body_html: str,
        now: datetime | None = None,
    ) -> Message:
        """Replace the body of the caller's own message while it is editable."""
        message = self._require_message(message_id)
        if message.sender_id != user_id:
            raise AccessDeniedError("Forbidden")
        current = now or utcnow()
        if self.has_locking_report(message_id):
            raise ConflictError("Could not edit message", "Reported messages cannot be edited.")
        if not can_edit_message(message.created_at, current, settings.dm_message_edit_window_seconds):
            raise AccessDeniedError("Could not edit message", "Edit window has expired.")

        sanitized = sanitize_for_storage(body_html)
        if not validate_plain_text_length(sanitized, max_length=settings.dm_message_max_chars):
            raise ValidationFailedError("Invalid payload", _length_detail())

        message.body_html = sanitized
        message.body_text = to_plain_text(sanitized)
        message.edited_at = current
        self.db.commit()
        return message

    def has_locking_report(self, message_id: str) -> bool:
        """Return True if an open or resolved report references the message."""
        stmt = select(func.count(MessageReport.id)).where(
            MessageReport.message_id == message_id,
            MessageReport.status.in_(REPORT_LOCKING_STATUSES),
        )
        return bool(self.db.execute(stmt).scalar())

    async def delete_message(self, user_id: str, message_id: str) -> None:
        """Delete the caller's message with its owned media, unless it is under review."""
        message = self._require_message(message_id)
        if self.has_locking_report(message_id):
            raise ConflictError("Could not delete message", "Reported messages cannot be deleted.")
        if message.sender_id != user_id:
            raise AccessDeniedError("Forbidden")

        conversation_id = message.conversation_id
        storage_paths = [
            attachment.storage_path
            for attachment in message.attachments
            if attachment.bucket == settings.dm_media_bucket
            and not attachment.is_external
            and not attachment.storage_path.startswith(EXTERNAL_PATH_PREFIX)
        ]

        self.db.delete(message)
        self.db.commit()

        if storage_paths and self.storage is not None:
            try:
                await self.storage.remove(settings.dm_media_bucket, storage_paths)
            except StorageError as exc:
                logger.error(
                    "Failed to remove %d attachment(s) of message %s: %s",
                    len(storage_paths),
                    message_id,
                    exc,
                )

        self.conversations.refresh_latest(conversation_id)

    def list_messages(
        self,
        user_id: str,
        conversation_id: str,
        *,
        limit: int = 40,
        cursor: datetime | None = None,
    ) -> MessageListResponse:
        """Return the newest ``limit`` messages before ``cursor``, oldest first."""
        self.access.require_participant(user_id, conversation_id)

        stmt = select(Message).where(Message.conversation_id == conversation_id)
        if cursor is not None:
            stmt = stmt.where(Message.created_at < as_utc(cursor))
        stmt = stmt.order_by(Message.created_at.desc()).limit(limit)
        messages = list(self.db.execute(stmt).scalars())
        messages.reverse()

        participants = self.db.execute(
            select(Participant).where(Participant.conversation_id == conversation_id)
        ).scalars().all()

        profile_ids = {message.sender_id for message in messages} | {p.user_id for p in participants}
        profiles = {
            profile.id: ProfileSnapshot.from_profile(profile)
            for profile in self.db.execute(select(Profile).where(Profile.id.in_(profile_ids))).scalars()
        } if profile_ids else {}

        return MessageListResponse(
            messages=[MessageResponse.from_model(message, profiles.get(message.sender_id)) for message in messages],
            participants=[
                ParticipantState(
                    user_id=participant.user_id,
                    last_read_at=participant.last_read_at,
                    last_seen_at=participant.last_seen_at,
                    profile=profiles.get(participant.user_id),
                )
                for participant in participants
            ],
        )
