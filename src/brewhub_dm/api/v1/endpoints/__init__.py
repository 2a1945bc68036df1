"""API endpoint modules for version 1."""

from .admin import router as admin_reports_router
from .blocks import router as blocks_router
from .conversations import router as conversations_router
from .media import router as media_router
from .messages import router as messages_router
from .reports import router as reports_router

__all__ = [
    "admin_reports_router",
    "blocks_router",
    "conversations_router",
    "media_router",
    "messages_router",
    "reports_router",
]
