"""Message media upload endpoint."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, File, Form, UploadFile, status

from brewhub_dm.api.v1.dependencies import ActiveUserDep, SessionDep, StorageDep
from brewhub_dm.schemas import MediaUploadResponse
from brewhub_dm.services.media import upload_media

router = APIRouter(prefix="/messages", tags=["media"])


@router.post("/media", response_model=MediaUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_message_media(
    current_user: ActiveUserDep,
    db: SessionDep,
    storage: StorageDep,
    file: Annotated[UploadFile, File()],
    conversation_id: Annotated[str | None, Form(alias="conversationId")] = None,
) -> MediaUploadResponse:
    """Upload an image for use in a message."""
    data = await file.read()
    return await upload_media(
        db,
        storage,
        uploader_id=current_user.id,
        data=data,
        content_type=file.content_type,
        conversation_id=(conversation_id or "").strip() or None,
    )
