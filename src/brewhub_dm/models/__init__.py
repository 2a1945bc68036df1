# src/brewhub_dm/models/__init__.py
"""SQLAlchemy models for the BrewHub messaging service."""

from .audit import AuditLog
from .block import UserBlock
from .conversation import Conversation, Participant
from .message import Message, MessageAttachment
from .notification import UserNotification
from .rate import RateLimitCounter
from .report import MessageReport
from .user import Profile

__all__ = [
    "AuditLog",
    "UserBlock",
    "Conversation", "Participant",
    "Message", "MessageAttachment",
    "UserNotification",
    "RateLimitCounter",
    "MessageReport",
    "Profile",
]
