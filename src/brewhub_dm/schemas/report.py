"""Abuse-report Pydantic schemas."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .common import ProfileSnapshot, UtcDatetime
from .message import MessageResponse

ReportStatus = Literal["open", "resolved", "dismissed"]


class ReportCreate(BaseModel):
    """Schema for reporting a message."""

    conversation_id: str = Field(..., alias="conversationId", min_length=1)
    message_id: str = Field(..., alias="messageId", min_length=1)
    reason: str = Field(..., min_length=2, max_length=120)
    detail: str | None = Field(None, max_length=2000)

    model_config = ConfigDict(populate_by_name=True)


class ReportUpdate(BaseModel):
    """Schema for a reviewer closing a report."""

    status: Literal["resolved", "dismissed"]
    resolution_note: str | None = Field(None, alias="resolutionNote", max_length=2000)

    model_config = ConfigDict(populate_by_name=True)


class ReportResponse(BaseModel):
    """Schema for report information returned by the API."""

    id: str
    reporter_id: str
    conversation_id: str
    message_id: str | None
    reason: str
    detail: str | None
    status: ReportStatus
    assignee_id: str | None
    resolution_note: str | None
    resolved_at: UtcDatetime | None
    created_at: UtcDatetime
    updated_at: UtcDatetime

    model_config = ConfigDict(from_attributes=True)


class ReportSubmitResponse(BaseModel):
    """Submitted (or already existing) report."""

    report: ReportResponse
    created: bool


class ReportListResponse(BaseModel):
    reports: list[ReportResponse]


class ReportParticipant(BaseModel):
    user_id: str
    joined_at: UtcDatetime
    profile: ProfileSnapshot | None


class ReportContextResponse(BaseModel):
    """Everything a reviewer needs to judge a report."""

    report: ReportResponse
    participants: list[ReportParticipant]
    messages: list[MessageResponse]
