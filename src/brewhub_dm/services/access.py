"""Access control for conversations.

Both checks read the store on every call. Blocks and privacy preferences can
change between page load and send, so nothing here is cached.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from brewhub_dm.models import Participant, Profile, UserBlock
from brewhub_dm.models.user import DM_PRIVACY_NOBODY, DM_PRIVACY_VERIFIED_ONLY
from brewhub_dm.services.errors import (
    AccessDeniedError,
    DirectMessageError,
    NotFoundError,
    ValidationFailedError,
)

CONVERSATION_NOT_FOUND = "Conversation not found"
START_FAILED = "Could not start conversation"


@dataclass(frozen=True)
class InitiateDecision:
    """Result of evaluating whether a sender may open a conversation."""

    allowed: bool
    error: DirectMessageError | None = None


class AccessControl:
    """Evaluates participancy, blocks and privacy preferences."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_participant(self, user_id: str, conversation_id: str) -> Participant | None:
        """Return the member row of ``user_id`` in the conversation, if any."""
        return self.db.get(Participant, (conversation_id, user_id))

    def can_participate(self, user_id: str, conversation_id: str) -> bool:
        """Return True if the user may read and write the conversation."""
        return self.get_participant(user_id, conversation_id) is not None

    def require_participant(self, user_id: str, conversation_id: str) -> Participant:
        """Return the member row or raise 404 without revealing existence."""
        participant = self.get_participant(user_id, conversation_id)
        if participant is None:
            raise NotFoundError(CONVERSATION_NOT_FOUND)
        return participant

    def is_blocked_between(self, user_a: str, user_b: str) -> bool:
        """Return True if either user has blocked the other."""
        stmt = select(UserBlock.blocker_id).where(
            or_(
                and_(UserBlock.blocker_id == user_a, UserBlock.blocked_id == user_b),
                and_(UserBlock.blocker_id == user_b, UserBlock.blocked_id == user_a),
            )
        )
        return self.db.execute(stmt.limit(1)).first() is not None

    def evaluate_initiate(self, sender_id: str, recipient_id: str) -> InitiateDecision:
        """Decide whether ``sender_id`` may start a conversation with ``recipient_id``."""
        if sender_id == recipient_id:
            return InitiateDecision(
                False,
                ValidationFailedError(START_FAILED, "Cannot create direct message with yourself."),
            )

        recipient = self.db.get(Profile, recipient_id)
        if recipient is None:
            return InitiateDecision(False, NotFoundError("Recipient not found"))

        sender = self.db.get(Profile, sender_id)
        if sender is None or not sender.is_active:
            return InitiateDecision(False, AccessDeniedError("Account blocked or disabled"))
        if not recipient.is_active:
            return InitiateDecision(False, AccessDeniedError(START_FAILED, "Recipient is not available."))

        if self.is_blocked_between(sender_id, recipient_id):
            return InitiateDecision(
                False,
                AccessDeniedError(START_FAILED, "Messaging between these accounts is blocked."),
            )

        if recipient.dm_privacy == DM_PRIVACY_NOBODY or (
            recipient.dm_privacy == DM_PRIVACY_VERIFIED_ONLY and not sender.is_verified
        ):
            return InitiateDecision(
                False,
                AccessDeniedError(
                    START_FAILED,
                    "Recipient does not accept direct messages from this account.",
                ),
            )

        return InitiateDecision(True)

    def can_initiate(self, sender_id: str, recipient_id: str) -> bool:
        """Return True if a conversation may be started."""
        return self.evaluate_initiate(sender_id, recipient_id).allowed

    def require_initiate(self, sender_id: str, recipient_id: str) -> None:
        """Raise the typed reason when a conversation may not be started."""
        decision = self.evaluate_initiate(sender_id, recipient_id)
        if decision.error is not None:
            raise decision.error

    def require_can_send(self, sender_id: str, recipient_id: str) -> None:
        """Re-check the counterpart at send time inside an existing conversation.

        Privacy preferences only gate new conversations; blocks and account
        status apply to every message.
        """
        recipient = self.db.get(Profile, recipient_id)
        if recipient is None or not recipient.is_active:
            raise AccessDeniedError("Could not send message", "Recipient is not available.")
        if self.is_blocked_between(sender_id, recipient_id):
            raise AccessDeniedError("Could not send message", "Messaging between these accounts is blocked.")
