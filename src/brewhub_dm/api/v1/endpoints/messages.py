"""Endpoints acting on a single message."""

from __future__ import annotations

from fastapi import APIRouter

from brewhub_dm.api.v1.dependencies import ActiveUserDep, SessionDep, StorageDep
from brewhub_dm.schemas import MessageResponse, MessageUpdate, SuccessResponse
from brewhub_dm.services.messages import MessageService

router = APIRouter(prefix="/messages/messages", tags=["messages"])


@router.patch("/{message_id}", response_model=MessageResponse)
async def edit_message(
    message_id: str,
    payload: MessageUpdate,
    current_user: ActiveUserDep,
    db: SessionDep,
) -> MessageResponse:
    """Edit the caller's message inside the edit window."""
    message = MessageService(db).edit_message(current_user.id, message_id, payload.body_html)
    return MessageResponse.from_model(message)


@router.delete("/{message_id}", response_model=SuccessResponse)
async def delete_message(
    message_id: str,
    current_user: ActiveUserDep,
    db: SessionDep,
    storage: StorageDep,
) -> SuccessResponse:
    """Delete the caller's message unless a report holds it for review."""
    await MessageService(db, storage).delete_message(current_user.id, message_id)
    return SuccessResponse()
