"""Conversation and participant management."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from brewhub_dm.core.settings import settings
from brewhub_dm.db.time import as_utc, utcnow
from brewhub_dm.models import Conversation, Message, Participant, Profile
from brewhub_dm.schemas import (
    ConversationListResponse,
    ConversationSummary,
    LastMessagePreview,
    ProfileSnapshot,
)
from brewhub_dm.services.access import AccessControl
from brewhub_dm.services.rate_limit import require_quota

logger = logging.getLogger(__name__)

CONVERSATION_QUOTA_SCOPE = "dm:conversation"
CONVERSATIONS_ENDPOINT = "/api/v1/messages/conversations"


def build_pair_key(user_a: str, user_b: str) -> str:
    """Return the order-independent key of a user pair."""
    if user_a == user_b:
        return user_a
    first, second = sorted((user_a, user_b))
    return f"{first}:{second}"


class ConversationService:
    """Owns conversation creation, archival, read receipts and inbox projection."""

    def __init__(self, db: Session, access: AccessControl | None = None) -> None:
        self.db = db
        self.access = access or AccessControl(db)

    def find_by_pair(self, user_a: str, user_b: str) -> Conversation | None:
        stmt = select(Conversation).where(Conversation.direct_key == build_pair_key(user_a, user_b))
        return self.db.execute(stmt).scalar_one_or_none()

    def get_counterpart_id(self, conversation_id: str, user_id: str) -> str | None:
        """Return the other member of a conversation, if one is on record."""
        conversation = self.db.get(Conversation, conversation_id)
        if conversation is not None and conversation.direct_key:
            for member_id in conversation.direct_key.split(":"):
                if member_id != user_id:
                    return member_id
        stmt = select(Participant.user_id).where(
            Participant.conversation_id == conversation_id,
            Participant.user_id != user_id,
        )
        return self.db.execute(stmt.limit(1)).scalar_one_or_none()

    def get_or_create(
        self,
        sender_id: str,
        recipient_id: str,
        now_ms: int | None = None,
    ) -> tuple[Conversation, bool]:
        """Return the pair's conversation, creating it when none exists.

        Initiation rules are evaluated on every call. The daily creation
        quota is only consumed when a new conversation is actually created.
        """
        self.access.require_initiate(sender_id, recipient_id)

        existing = self.find_by_pair(sender_id, recipient_id)
        if existing is not None:
            self._ensure_participants(existing, sender_id, recipient_id)
            return existing, False

        require_quota(
            self.db,
            scope=CONVERSATION_QUOTA_SCOPE,
            identifier=sender_id,
            endpoint=CONVERSATIONS_ENDPOINT,
            method="POST",
            limit=settings.dm_conversation_daily_limit,
            window_seconds=settings.dm_conversation_window_seconds,
            detail="Daily conversation start limit reached.",
            now_ms=now_ms,
        )

        now = utcnow()
        conversation = Conversation(
            direct_key=build_pair_key(sender_id, recipient_id),
            created_by=sender_id,
            last_message_at=now,
        )
        conversation.participants = [
            Participant(user_id=sender_id, joined_at=now, last_seen_at=now),
            Participant(user_id=recipient_id, joined_at=now),
        ]
        try:
            with self.db.begin_nested():
                self.db.add(conversation)
            self.db.commit()
        except IntegrityError:
            # Another request created the pair first; the savepoint is already rolled back.
            existing = self.find_by_pair(sender_id, recipient_id)
            if existing is None:
                raise
            logger.info("Reusing concurrently created conversation %s", existing.id)
            self._ensure_participants(existing, sender_id, recipient_id)
            return existing, False

        logger.info("Created conversation %s for %s", conversation.id, sender_id)
        return conversation, True

    def _ensure_participants(self, conversation: Conversation, initiator_id: str, counterpart_id: str) -> None:
        initiator = self.db.get(Participant, (conversation.id, initiator_id))
        if initiator is None:
            self.db.add(Participant(conversation_id=conversation.id, user_id=initiator_id, last_seen_at=utcnow()))
        else:
            initiator.archived_at = None
            initiator.last_seen_at = utcnow()

        if self.db.get(Participant, (conversation.id, counterpart_id)) is None:
            self.db.add(Participant(conversation_id=conversation.id, user_id=counterpart_id))
        self.db.commit()

    def archive(self, user_id: str, conversation_id: str, archived: bool = True) -> Participant:
        """Set or clear the caller's archived flag; the counterpart is untouched."""
        participant = self.access.require_participant(user_id, conversation_id)
        participant.archived_at = utcnow() if archived else None
        self.db.commit()
        return participant

    def mark_read(self, user_id: str, conversation_id: str) -> Participant:
        """Stamp the caller's read receipt and last activity with the current time."""
        participant = self.access.require_participant(user_id, conversation_id)
        now = utcnow()
        participant.last_read_at = now
        participant.last_seen_at = now
        self.db.commit()
        return participant

    def refresh_latest(self, conversation_id: str) -> None:
        """Recompute the cached last-message pointer from the newest stored message."""
        conversation = self.db.get(Conversation, conversation_id)
        if conversation is None:
            return
        stmt = (
            select(Message.id, Message.created_at)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.desc())
            .limit(1)
        )
        latest = self.db.execute(stmt).first()
        if latest is None:
            conversation.last_message_id = None
            conversation.last_message_at = utcnow()
        else:
            conversation.last_message_id = latest.id
            conversation.last_message_at = latest.created_at
        self.db.commit()

    def conversation_unread_count(self, participant: Participant) -> int:
        """Count counterpart messages newer than the participant's read receipt."""
        stmt = select(func.count(Message.id)).where(
            Message.conversation_id == participant.conversation_id,
            Message.sender_id != participant.user_id,
        )
        if participant.last_read_at is not None:
            stmt = stmt.where(Message.created_at > participant.last_read_at)
        return int(self.db.execute(stmt).scalar() or 0)

    def unread_count(self, user_id: str) -> int:
        """Sum unread counterpart messages over the user's active conversations.

        One count query per conversation; fine for inbox-sized participant
        sets.
        """
        stmt = select(Participant).where(
            Participant.user_id == user_id,
            Participant.archived_at.is_(None),
        )
        participants = self.db.execute(stmt).scalars().all()
        return sum(self.conversation_unread_count(participant) for participant in participants)

    def list_conversations(
        self,
        user_id: str,
        *,
        view: str = "active",
        limit: int = 20,
        cursor: datetime | None = None,
        search: str | None = None,
    ) -> ConversationListResponse:
        """Return one inbox page for ``user_id``, newest activity first."""
        query = search.strip().lower() if search else ""
        fetch_limit = max(limit * 4, 40) if query else limit + 1

        stmt = (
            select(Participant, Conversation)
            .join(Conversation, Participant.conversation_id == Conversation.id)
            .where(Participant.user_id == user_id)
        )
        if view == "archived":
            stmt = stmt.where(Participant.archived_at.is_not(None))
        else:
            stmt = stmt.where(Participant.archived_at.is_(None))
        if cursor is not None:
            stmt = stmt.where(Conversation.last_message_at < as_utc(cursor))
        stmt = stmt.order_by(Conversation.last_message_at.desc()).limit(fetch_limit)
        rows = self.db.execute(stmt).all()

        conversation_ids = [conversation.id for _, conversation in rows]
        members: dict[str, list[str]] = {}
        if conversation_ids:
            member_rows = self.db.execute(
                select(Participant.conversation_id, Participant.user_id).where(
                    Participant.conversation_id.in_(conversation_ids)
                )
            ).all()
            for conversation_id, member_id in member_rows:
                members.setdefault(conversation_id, []).append(member_id)

        profile_ids = {member_id for ids in members.values() for member_id in ids}
        profiles = {
            profile.id: ProfileSnapshot.from_profile(profile)
            for profile in self.db.execute(select(Profile).where(Profile.id.in_(profile_ids))).scalars()
        } if profile_ids else {}

        message_ids = [conversation.last_message_id for _, conversation in rows if conversation.last_message_id]
        previews = {
            message.id: LastMessagePreview(
                id=message.id,
                sender_id=message.sender_id,
                body_text=message.body_text,
                created_at=message.created_at,
            )
            for message in self.db.execute(select(Message).where(Message.id.in_(message_ids))).scalars()
        } if message_ids else {}

        summaries: list[ConversationSummary] = []
        for participant, conversation in rows:
            member_ids = members.get(conversation.id, [])
            counterpart_id = next((member for member in member_ids if member != user_id), None)
            counterpart = profiles.get(counterpart_id) if counterpart_id else None
            preview = previews.get(conversation.last_message_id or "")

            if query:
                haystack = " ".join(
                    part
                    for part in (
                        counterpart.display_name if counterpart else "",
                        preview.body_text if preview else "",
                    )
                    if part
                ).lower()
                if query not in haystack:
                    continue

            unread = self.conversation_unread_count(participant)
            summaries.append(
                ConversationSummary(
                    id=conversation.id,
                    conversation_type=conversation.conversation_type,
                    direct_key=conversation.direct_key,
                    last_message_at=conversation.last_message_at,
                    created_at=conversation.created_at,
                    updated_at=conversation.updated_at,
                    archived_at=participant.archived_at,
                    last_read_at=participant.last_read_at,
                    counterpart=counterpart,
                    participants=[profiles[member] for member in member_ids if member in profiles],
                    last_message=preview,
                    unread_count=unread,
                    unread_hint=unread > 0,
                )
            )

        page = summaries[:limit]
        has_more = len(summaries) > limit
        return ConversationListResponse(
            conversations=page,
            view="archived" if view == "archived" else "active",
            unread_count=self.unread_count(user_id),
            has_more=has_more,
            next_cursor=as_utc(page[-1].last_message_at) if has_more and page else None,
        )
