"""Authentication and error-envelope behaviour of the HTTP API."""

from brewhub_dm.core.security import create_access_token
from brewhub_dm.models.user import STATUS_BLOCKED


def test_missing_token_is_unauthorized(client):
    response = client.get("/api/v1/messages/unread-count")
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized", "details": None}


def test_garbage_token_is_unauthorized(client):
    response = client.get(
        "/api/v1/messages/unread-count",
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"


def test_token_for_unknown_profile(client):
    token = create_access_token("ghost")
    response = client.get("/api/v1/messages/unread-count", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_blocked_account_is_forbidden(client, make_profile, auth_headers):
    profile = make_profile(status=STATUS_BLOCKED)
    response = client.get("/api/v1/messages/unread-count", headers=auth_headers(profile))
    assert response.status_code == 403
    assert response.json()["error"] == "Account blocked or disabled"


def test_malformed_body_maps_to_400(client, alice, auth_headers):
    response = client.post(
        "/api/v1/messages/conversations",
        json={"somethingElse": 1},
        headers=auth_headers(alice),
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid payload"


def test_out_of_range_query_maps_to_400(client, alice, auth_headers):
    response = client.get("/api/v1/messages/conversations?limit=500", headers=auth_headers(alice))
    assert response.status_code == 400


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
    info = client.get("/").json()
    assert info["docs"] == "/docs"
