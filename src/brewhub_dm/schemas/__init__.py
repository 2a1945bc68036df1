"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .block import BlockedUser, BlockListResponse
from .common import ErrorResponse, ProfileSnapshot, SuccessResponse, UtcDatetime
from .conversation import (
    ArchiveRequest,
    ArchiveResponse,
    ConversationListResponse,
    ConversationStart,
    ConversationStartResponse,
    ConversationSummary,
    LastMessagePreview,
    ReadReceiptResponse,
    UnreadCountResponse,
)
from .message import (
    AttachmentResponse,
    MediaUploadResponse,
    MessageCreate,
    MessageListResponse,
    MessageResponse,
    MessageUpdate,
    ParticipantState,
)
from .report import (
    ReportContextResponse,
    ReportCreate,
    ReportListResponse,
    ReportParticipant,
    ReportResponse,
    ReportSubmitResponse,
    ReportUpdate,
)

__all__ = [
    "BlockedUser", "BlockListResponse",
    "ErrorResponse", "ProfileSnapshot", "SuccessResponse", "UtcDatetime",
    "ArchiveRequest", "ArchiveResponse", "ConversationListResponse", "ConversationStart",
    "ConversationStartResponse", "ConversationSummary", "LastMessagePreview",
    "ReadReceiptResponse", "UnreadCountResponse",
    "AttachmentResponse", "MediaUploadResponse", "MessageCreate", "MessageListResponse",
    "MessageResponse", "MessageUpdate", "ParticipantState",
    "ReportContextResponse", "ReportCreate", "ReportListResponse", "ReportParticipant",
    "ReportResponse", "ReportSubmitResponse", "ReportUpdate",
]
