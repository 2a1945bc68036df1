"""Fire-and-forget notification sink."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from brewhub_dm.models import UserNotification

logger = logging.getLogger(__name__)

EVENT_DIRECT_MESSAGE = "direct_message"


class NotificationSink(Protocol):
    """Consumer of notification events; must never raise."""

    def notify(self, recipient_id: str, event_type: str, payload: dict[str, Any]) -> None:
        ...


class DatabaseNotificationSink:
    """Writes notifications as ``user_notifications`` rows."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def notify(self, recipient_id: str, event_type: str, payload: dict[str, Any]) -> None:
        """Insert one notification, swallowing and logging any failure."""
        if not recipient_id.strip():
            return
        try:
            self.db.add(
                UserNotification(
                    recipient_id=recipient_id,
                    actor_id=payload.get("actor_id"),
                    event_type=event_type,
                    title=str(payload.get("title", "")),
                    body=str(payload.get("body", "")),
                    link_path=str(payload.get("link_path", "/messages")),
                    notification_metadata=dict(payload.get("metadata") or {}),
                )
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning(
                "[notifications] failed to insert %s notification for %s: %s",
                event_type,
                recipient_id,
                exc,
            )
