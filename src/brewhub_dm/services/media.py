"""Upload of message media into the managed bucket."""

from __future__ import annotations

import logging
import secrets

from sqlalchemy.orm import Session

from brewhub_dm.core.settings import settings
from brewhub_dm.db.time import to_epoch_ms, utcnow
from brewhub_dm.schemas import MediaUploadResponse
from brewhub_dm.services.access import AccessControl
from brewhub_dm.services.errors import ValidationFailedError
from brewhub_dm.services.storage import ObjectStorage, StorageError

logger = logging.getLogger(__name__)

EXTENSION_BY_MIME = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


def extension_for(mime_type: str) -> str:
    """Return the file extension stored for an allowed MIME type."""
    return EXTENSION_BY_MIME.get(mime_type, "bin")


def build_media_path(uploader_id: str, mime_type: str) -> str:
    """Return ``<uploader>/<YYYY-MM-DD>/<epoch ms>-<random>.<ext>``."""
    now = utcnow()
    return (
        f"{uploader_id}/{now.date().isoformat()}/"
        f"{to_epoch_ms(now)}-{secrets.token_hex(4)}.{extension_for(mime_type)}"
    )


async def upload_media(
    db: Session,
    storage: ObjectStorage,
    *,
    uploader_id: str,
    data: bytes,
    content_type: str | None,
    conversation_id: str | None = None,
) -> MediaUploadResponse:
    """Validate and store one image, returning its public location.

    When ``conversation_id`` is given the uploader must be a member of it.
    """
    if conversation_id:
        AccessControl(db).require_participant(uploader_id, conversation_id)

    mime_type = (content_type or "").split(";")[0].strip().lower()
    if mime_type not in settings.dm_media_allowed_types:
        raise ValidationFailedError("Unsupported media type", "Allowed types: jpg, png, webp.")
    if len(data) > settings.dm_media_max_bytes:
        max_mb = settings.dm_media_max_bytes // (1024 * 1024)
        raise ValidationFailedError("File is too large", f"Maximum size is {max_mb}MB.")

    path = build_media_path(uploader_id, mime_type)
    try:
        public_url = await storage.upload(settings.dm_media_bucket, path, data, mime_type)
    except StorageError as exc:
        logger.error("Media upload for %s failed: %s", uploader_id, exc)
        raise ValidationFailedError("Could not upload media", str(exc)) from exc

    return MediaUploadResponse(
        image_url=public_url,
        public_url=public_url,
        storage_path=path,
        mime_type=mime_type,
        size_bytes=len(data),
    )
