"""Version 1 API endpoints."""

from .endpoints import (
    admin_reports_router,
    blocks_router,
    conversations_router,
    media_router,
    messages_router,
    reports_router,
)

__all__ = [
    "admin_reports_router",
    "blocks_router",
    "conversations_router",
    "media_router",
    "messages_router",
    "reports_router",
]
