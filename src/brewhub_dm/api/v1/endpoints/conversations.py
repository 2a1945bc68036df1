"""Conversation endpoints: inbox, start, archive, read receipts and messages."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal

from fastapi import APIRouter, Query, Response, status

from brewhub_dm.api.v1.dependencies import ActiveUserDep, NotifierDep, SessionDep, StorageDep
from brewhub_dm.schemas import (
    ArchiveRequest,
    ArchiveResponse,
    ConversationListResponse,
    ConversationStart,
    ConversationStartResponse,
    MessageCreate,
    MessageListResponse,
    MessageResponse,
    ProfileSnapshot,
    ReadReceiptResponse,
    UnreadCountResponse,
)
from brewhub_dm.services.conversations import ConversationService
from brewhub_dm.services.messages import MessageService

router = APIRouter(prefix="/messages", tags=["conversations"])


@router.get("/conversations", response_model=ConversationListResponse)
async def list_conversations(
    current_user: ActiveUserDep,
    db: SessionDep,
    view: Literal["active", "archived"] = "active",
    limit: Annotated[int, Query(ge=1, le=50)] = 20,
    cursor: datetime | None = None,
    q: Annotated[str | None, Query(max_length=120)] = None,
) -> ConversationListResponse:
    """List the caller's conversations, newest activity first."""
    return ConversationService(db).list_conversations(
        current_user.id,
        view=view,
        limit=limit,
        cursor=cursor,
        search=q,
    )


@router.post("/conversations", response_model=ConversationStartResponse)
async def start_conversation(
    payload: ConversationStart,
    current_user: ActiveUserDep,
    db: SessionDep,
    response: Response,
) -> ConversationStartResponse:
    """Open a conversation with another member, reusing the existing one."""
    conversation, created = ConversationService(db).get_or_create(current_user.id, payload.recipient_id)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return ConversationStartResponse(conversation_id=conversation.id, created=created)


@router.patch("/conversations/{conversation_id}/archive", response_model=ArchiveResponse)
async def archive_conversation(
    conversation_id: str,
    current_user: ActiveUserDep,
    db: SessionDep,
    payload: ArchiveRequest | None = None,
) -> ArchiveResponse:
    """Archive or restore a conversation in the caller's inbox only."""
    archived = payload.archived if payload is not None else True
    participant = ConversationService(db).archive(current_user.id, conversation_id, archived)
    return ArchiveResponse(conversation_id=conversation_id, archived_at=participant.archived_at)


@router.patch("/conversations/{conversation_id}/read", response_model=ReadReceiptResponse)
async def mark_conversation_read(
    conversation_id: str,
    current_user: ActiveUserDep,
    db: SessionDep,
) -> ReadReceiptResponse:
    """Record that the caller has read the conversation up to now."""
    participant = ConversationService(db).mark_read(current_user.id, conversation_id)
    return ReadReceiptResponse(conversation_id=conversation_id, last_read_at=participant.last_read_at)


@router.get("/conversations/{conversation_id}/messages", response_model=MessageListResponse)
async def list_messages(
    conversation_id: str,
    current_user: ActiveUserDep,
    db: SessionDep,
    limit: Annotated[int, Query(ge=1, le=100)] = 40,
    cursor: datetime | None = None,
) -> MessageListResponse:
    """Return a page of messages in chronological order."""
    return MessageService(db).list_messages(current_user.id, conversation_id, limit=limit, cursor=cursor)


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    conversation_id: str,
    payload: MessageCreate,
    current_user: ActiveUserDep,
    db: SessionDep,
    storage: StorageDep,
    notifier: NotifierDep,
) -> MessageResponse:
    """Send a message into a conversation the caller belongs to."""
    message = MessageService(db, storage, notifier).send_message(
        current_user.id,
        conversation_id,
        payload.body_html,
        payload.attachment_urls,
    )
    return MessageResponse.from_model(message, ProfileSnapshot.from_profile(current_user))


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(current_user: ActiveUserDep, db: SessionDep) -> UnreadCountResponse:
    """Total unread messages over the caller's active conversations."""
    return UnreadCountResponse(unread_count=ConversationService(db).unread_count(current_user.id))
