"""Tests for media upload validation and storage paths."""

import re

import pytest

from brewhub_dm.core.settings import settings
from brewhub_dm.services.conversations import ConversationService
from brewhub_dm.services.errors import NotFoundError, ValidationFailedError
from brewhub_dm.services.media import build_media_path, extension_for, upload_media
from brewhub_dm.services.storage import StorageError, parse_managed_storage_path

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def test_extension_for_known_types():
    assert extension_for("image/jpeg") == "jpg"
    assert extension_for("image/png") == "png"
    assert extension_for("image/webp") == "webp"


def test_media_path_layout():
    path = build_media_path("user-1", "image/png")
    assert re.fullmatch(r"user-1/\d{4}-\d{2}-\d{2}/\d+-[0-9a-f]{8}\.png", path)


def test_managed_path_parsing():
    url = f"{settings.storage_base_url}/storage/v1/object/public/{settings.dm_media_bucket}/u/2026-01-01/x.png"
    assert parse_managed_storage_path(url) == "u/2026-01-01/x.png"
    assert parse_managed_storage_path("https://cdn.example/other/x.png") is None
    assert parse_managed_storage_path("not a url") is None
    assert parse_managed_storage_path(None) is None


async def test_upload_stores_object(db_session, alice, storage):
    result = await upload_media(
        db_session,
        storage,
        uploader_id=alice.id,
        data=PNG_BYTES,
        content_type="image/png",
    )
    assert result.mime_type == "image/png"
    assert result.size_bytes == len(PNG_BYTES)
    assert result.storage_path.startswith(f"{alice.id}/")
    assert result.image_url == result.public_url
    assert parse_managed_storage_path(result.public_url) == result.storage_path
    assert storage.objects[(settings.dm_media_bucket, result.storage_path)] == PNG_BYTES


async def test_content_type_parameters_are_ignored(db_session, alice, storage):
    result = await upload_media(
        db_session,
        storage,
        uploader_id=alice.id,
        data=b"jpeg",
        content_type="image/JPEG; charset=binary",
    )
    assert result.storage_path.endswith(".jpg")


async def test_unsupported_type(db_session, alice, storage):
    with pytest.raises(ValidationFailedError) as exc_info:
        await upload_media(db_session, storage, uploader_id=alice.id, data=b"GIF89a", content_type="image/gif")
    assert exc_info.value.message == "Unsupported media type"
    assert storage.objects == {}


async def test_oversized_file(db_session, alice, storage, mocker):
    mocker.patch.object(settings, "dm_media_max_bytes", 16)
    with pytest.raises(ValidationFailedError) as exc_info:
        await upload_media(db_session, storage, uploader_id=alice.id, data=PNG_BYTES, content_type="image/png")
    assert exc_info.value.message == "File is too large"


async def test_upload_into_foreign_conversation(db_session, alice, bob, make_profile, storage):
    conversation, _ = ConversationService(db_session).get_or_create(alice.id, bob.id)
    with pytest.raises(NotFoundError):
        await upload_media(
            db_session,
            storage,
            uploader_id=make_profile().id,
            data=PNG_BYTES,
            content_type="image/png",
            conversation_id=conversation.id,
        )


async def test_storage_failure_is_reported(db_session, alice, storage, mocker):
    mocker.patch.object(storage, "upload", side_effect=StorageError("bucket missing"))
    with pytest.raises(ValidationFailedError) as exc_info:
        await upload_media(db_session, storage, uploader_id=alice.id, data=PNG_BYTES, content_type="image/png")
    assert exc_info.value.message == "Could not upload media"
