"""HTTP tests for editing, deleting, uploading and reporting messages."""

import pytest

from brewhub_dm.core.settings import settings


@pytest.fixture()
def thread(client, alice, bob, auth_headers):
    conversation_id = client.post(
        "/api/v1/messages/conversations",
        json={"recipientId": bob.id},
        headers=auth_headers(alice),
    ).json()["conversation_id"]
    message = client.post(
        f"/api/v1/messages/conversations/{conversation_id}/messages",
        json={"body_html": "<p>Brewday on <strong>Saturday</strong></p>"},
        headers=auth_headers(alice),
    ).json()
    return conversation_id, message["id"]


def test_edit_own_message(client, alice, auth_headers, thread):
    _, message_id = thread
    response = client.patch(
        f"/api/v1/messages/messages/{message_id}",
        json={"body_html": "Brewday on Sunday"},
        headers=auth_headers(alice),
    )
    assert response.status_code == 200
    assert response.json()["body_text"] == "Brewday on Sunday"
    assert response.json()["edited_at"] is not None


def test_edit_other_message_forbidden(client, bob, auth_headers, thread):
    _, message_id = thread
    response = client.patch(
        f"/api/v1/messages/messages/{message_id}",
        json={"body_html": "hijacked"},
        headers=auth_headers(bob),
    )
    assert response.status_code == 403


def test_delete_unknown_message(client, alice, auth_headers):
    response = client.delete("/api/v1/messages/messages/missing", headers=auth_headers(alice))
    assert response.status_code == 404
    assert response.json()["error"] == "Message not found"


def test_report_then_delete_is_locked(client, alice, bob, moderator, auth_headers, thread):
    conversation_id, message_id = thread
    payload = {"conversationId": conversation_id, "messageId": message_id, "reason": "harassment"}

    first = client.post("/api/v1/messages/reports", json=payload, headers=auth_headers(bob))
    assert first.status_code == 201
    repeat = client.post("/api/v1/messages/reports", json=payload, headers=auth_headers(bob))
    assert repeat.status_code == 200
    assert repeat.json()["report"]["id"] == first.json()["report"]["id"]
    assert repeat.json()["created"] is False

    locked = client.delete(f"/api/v1/messages/messages/{message_id}", headers=auth_headers(alice))
    assert locked.status_code == 409
    assert locked.json()["details"] == "Reported messages cannot be deleted."

    report_id = first.json()["report"]["id"]
    dismissed = client.patch(
        f"/api/v1/admin/messages/reports/{report_id}",
        json={"status": "dismissed", "resolutionNote": "banter"},
        headers=auth_headers(moderator),
    )
    assert dismissed.status_code == 200
    assert dismissed.json()["status"] == "dismissed"

    deleted = client.delete(f"/api/v1/messages/messages/{message_id}", headers=auth_headers(alice))
    assert deleted.status_code == 200
    assert deleted.json() == {"success": True}


def test_admin_routes_require_superuser(client, bob, auth_headers):
    assert client.get("/api/v1/admin/messages/reports", headers=auth_headers(bob)).status_code == 403


def test_admin_queue_and_context(client, alice, bob, moderator, auth_headers, thread):
    conversation_id, message_id = thread
    report = client.post(
        "/api/v1/messages/reports",
        json={"conversationId": conversation_id, "messageId": message_id, "reason": "spam"},
        headers=auth_headers(bob),
    ).json()["report"]

    queue = client.get("/api/v1/admin/messages/reports?status=open", headers=auth_headers(moderator))
    assert [item["id"] for item in queue.json()["reports"]] == [report["id"]]

    context = client.get(f"/api/v1/admin/messages/reports/{report['id']}/context", headers=auth_headers(moderator))
    assert context.status_code == 200
    assert [m["id"] for m in context.json()["messages"]] == [message_id]

    invalid = client.patch(
        f"/api/v1/admin/messages/reports/{report['id']}",
        json={"status": "open"},
        headers=auth_headers(moderator),
    )
    assert invalid.status_code == 400


def test_upload_media(client, alice, auth_headers, storage, thread):
    conversation_id, _ = thread
    response = client.post(
        "/api/v1/messages/media",
        files={"file": ("hops.png", b"\x89PNG\r\n\x1a\n", "image/png")},
        data={"conversationId": conversation_id},
        headers=auth_headers(alice),
    )
    assert response.status_code == 201
    body = response.json()
    assert body["mime_type"] == "image/png"
    assert (settings.dm_media_bucket, body["storage_path"]) in storage.objects


def test_upload_rejects_other_types(client, alice, auth_headers):
    response = client.post(
        "/api/v1/messages/media",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        headers=auth_headers(alice),
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Unsupported media type"
