"""Conversation-related Pydantic schemas."""

from typing import Literal

from pydantic import BaseModel, Field

from .common import ProfileSnapshot, UtcDatetime

ConversationView = Literal["active", "archived"]


class ConversationStart(BaseModel):
    """Schema for opening (or reusing) a conversation with another member."""

    recipient_id: str = Field(..., alias="recipientId", min_length=1, max_length=64)

    model_config = {"populate_by_name": True}


class ConversationStartResponse(BaseModel):
    """Identifier of the conversation and whether it was just created."""

    conversation_id: str
    created: bool


class LastMessagePreview(BaseModel):
    """Newest message of a conversation, as shown in the inbox."""

    id: str
    sender_id: str
    body_text: str
    created_at: UtcDatetime


class ConversationSummary(BaseModel):
    """Inbox row for one conversation from the caller's point of view."""

    id: str
    conversation_type: str
    direct_key: str
    last_message_at: UtcDatetime
    created_at: UtcDatetime
    updated_at: UtcDatetime
    archived_at: UtcDatetime | None
    last_read_at: UtcDatetime | None
    counterpart: ProfileSnapshot | None
    participants: list[ProfileSnapshot]
    last_message: LastMessagePreview | None
    unread_count: int
    unread_hint: bool


class ConversationListResponse(BaseModel):
    """One page of the caller's inbox."""

    conversations: list[ConversationSummary]
    view: ConversationView
    unread_count: int
    has_more: bool = False
    next_cursor: UtcDatetime | None = None


class ArchiveRequest(BaseModel):
    """Schema for archiving or restoring a conversation."""

    archived: bool = True


class ArchiveResponse(BaseModel):
    conversation_id: str
    archived_at: UtcDatetime | None


class ReadReceiptResponse(BaseModel):
    conversation_id: str
    last_read_at: UtcDatetime


class UnreadCountResponse(BaseModel):
    unread_count: int
