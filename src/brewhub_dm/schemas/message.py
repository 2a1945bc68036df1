"""Message-related Pydantic schemas."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from brewhub_dm.models import Message, MessageAttachment

from .common import ProfileSnapshot, UtcDatetime


class MessageCreate(BaseModel):
    """Schema for sending a message into a conversation."""

    body_html: str | None = Field(None, max_length=100_000, description="Rich-text body")
    attachment_urls: list[str] = Field(default_factory=list, description="Uploaded media URLs")


class MessageUpdate(BaseModel):
    """Schema for editing a message inside the edit window."""

    body_html: str = Field(..., min_length=1, max_length=100_000)


class AttachmentResponse(BaseModel):
    id: str
    public_url: str
    mime_type: str
    size_bytes: int
    metadata: dict[str, Any]
    created_at: UtcDatetime

    @classmethod
    def from_model(cls, attachment: MessageAttachment) -> AttachmentResponse:
        return cls(
            id=attachment.id,
            public_url=attachment.public_url,
            mime_type=attachment.mime_type,
            size_bytes=attachment.size_bytes,
            metadata=attachment.attachment_metadata or {},
            created_at=attachment.created_at,
        )


class MessageResponse(BaseModel):
    """Schema for message information returned by the API."""

    id: str
    conversation_id: str
    sender_id: str
    body_html: str
    body_text: str
    edited_at: UtcDatetime | None
    created_at: UtcDatetime
    sender: ProfileSnapshot | None = None
    attachments: list[AttachmentResponse] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_model(
        cls,
        message: Message,
        sender: ProfileSnapshot | None = None,
    ) -> MessageResponse:
        return cls(
            id=message.id,
            conversation_id=message.conversation_id,
            sender_id=message.sender_id,
            body_html=message.body_html,
            body_text=message.body_text,
            edited_at=message.edited_at,
            created_at=message.created_at,
            sender=sender,
            attachments=[AttachmentResponse.from_model(item) for item in message.attachments],
        )


class ParticipantState(BaseModel):
    """Read state of one member, used for read receipts."""

    user_id: str
    last_read_at: UtcDatetime | None
    last_seen_at: UtcDatetime | None
    profile: ProfileSnapshot | None


class MessageListResponse(BaseModel):
    """A page of messages in chronological order."""

    messages: list[MessageResponse]
    participants: list[ParticipantState]


class MediaUploadResponse(BaseModel):
    """Location of freshly uploaded message media."""

    image_url: str
    public_url: str
    storage_path: str
    mime_type: str
    size_bytes: int
