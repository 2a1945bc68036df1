"""Audit sink for rate-limit denials and moderation actions.

Audit writes are fire-and-forget: a failure is logged and swallowed so it
never fails the request that triggered it.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Literal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from brewhub_dm.db.time import utcnow
from brewhub_dm.models import AuditLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitAuditEvent:
    """A single rate-limit denial."""

    source: Literal["edge", "db"]
    endpoint: str
    method: str
    key_scope: str
    retry_after_seconds: int
    identifier: str | None = None
    actor_id: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Return the structured form used for logs and audit rows."""
        return {
            "event": "rate_limit_hit",
            "source": self.source,
            "endpoint": self.endpoint,
            "method": self.method,
            "key_scope": self.key_scope,
            "retry_after_seconds": self.retry_after_seconds,
            "identifier": self.identifier,
            "timestamp": utcnow().isoformat(),
        }


def emit_rate_limit_log(event: RateLimitAuditEvent) -> None:
    """Write the denial to the application log."""
    logger.warning("[rate-limit] %s", json.dumps(event.to_payload()))


def persist_rate_limit_audit(db: Session, event: RateLimitAuditEvent) -> None:
    """Log the denial and store it as an audit row."""
    emit_rate_limit_log(event)
    _write_audit_row(
        db,
        actor_id=event.actor_id,
        action="rate_limit.hit",
        target_type="endpoint",
        target_id=None,
        metadata=event.to_payload(),
        failure_context={"endpoint": event.endpoint, "method": event.method},
    )


def record_moderation_action(
    db: Session,
    *,
    actor_id: str,
    action: str,
    report_id: str,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Store a privileged moderation action against a report."""
    logger.info("[moderation] %s report=%s actor=%s", action, report_id, actor_id)
    _write_audit_row(
        db,
        actor_id=actor_id,
        action=action,
        target_type="dm_report",
        target_id=report_id,
        metadata=metadata or {},
        failure_context={"action": action, "report_id": report_id},
    )


def _write_audit_row(
    db: Session,
    *,
    actor_id: str | None,
    action: str,
    target_type: str,
    target_id: str | None,
    metadata: dict[str, Any],
    failure_context: dict[str, Any],
) -> None:
    try:
        db.add(
            AuditLog(
                actor_id=actor_id,
                action=action,
                target_type=target_type,
                target_id=target_id,
                audit_metadata=metadata,
            )
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning(
            "[audit] %s",
            json.dumps(
                {
                    "event": "audit_write_failed",
                    **failure_context,
                    "message": str(exc),
                    "timestamp": utcnow().isoformat(),
                }
            ),
        )
