"""Tests for the notification HTTP endpoints.

Most tests override the relay service dependency with one built on a fake
clock so rate limit windows are deterministic.
"""

from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from notify_relay.api.routes.notifications import extract_bearer_token, get_relay_service
from notify_relay.core.config import settings
from notify_relay.core.errors import StoreUnavailableError
from notify_relay.main import app
from notify_relay.services.relay_service import RelayService


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def relay(relay_factory):
    """Install a two-per-minute relay service for the duration of a test."""
    service = relay_factory(limit=2, window_seconds=60)
    app.dependency_overrides[get_relay_service] = lambda: service
    yield service
    app.dependency_overrides.pop(get_relay_service, None)


def _notify(client: TestClient, message, token: str | None = "T"):
    headers = {"Authorization": f"Bearer {token}"} if token is not None else {}
    return client.post("/api/v1/notify", json={"message": message}, headers=headers)


def test_push_returns_created_notification_with_quota_headers(client, relay) -> None:
    resp = _notify(client, "hello")

    assert resp.status_code == 201
    body = resp.json()
    assert body["message"] == "hello"
    assert body["id"]
    assert body["timestamp"].endswith("Z")
    assert resp.headers["X-RateLimit-Limit"] == "2"
    assert resp.headers["X-RateLimit-Remaining"] == "1"
    assert "X-RateLimit-Reset" in resp.headers


def test_push_over_limit_returns_429_with_retry_after(client, relay, clock) -> None:
    _notify(client, "one")
    _notify(client, "two")
    clock.advance(30)

    resp = _notify(client, "three")

    assert resp.status_code == 429
    assert resp.headers["Retry-After"] == "30"
    assert resp.headers["X-RateLimit-Remaining"] == "0"
    assert resp.json() == {
        "message": "Rate limit exceeded. Try again in 30 seconds.",
        "retry_after": 30,
    }


def test_push_allowed_again_after_window(client, relay, clock) -> None:
    _notify(client, "one")
    _notify(client, "two")
    assert _notify(client, "three").status_code == 429

    clock.advance(60)

    resp = _notify(client, "four")
    assert resp.status_code == 201
    assert resp.headers["X-RateLimit-Remaining"] == "1"


def test_push_without_authorization_is_401(client, relay) -> None:
    resp = _notify(client, "hello", token=None)

    assert resp.status_code == 401
    assert resp.json()["detail"] == "Missing Authorization header"


@pytest.mark.parametrize("payload", [{}, {"message": ""}, {"message": None}])
def test_push_without_message_is_400(client, relay, payload) -> None:
    resp = client.post("/api/v1/notify", json=payload, headers={"Authorization": "Bearer T"})

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Missing message in request body"


def test_push_without_body_is_400(client, relay) -> None:
    resp = client.post("/api/v1/notify", headers={"Authorization": "Bearer T"})

    assert resp.status_code == 400


def test_invalid_requests_do_not_consume_quota(client, relay) -> None:
    for _ in range(3):
        _notify(client, "")

    assert _notify(client, "real").status_code == 201
    assert _notify(client, "real again").status_code == 201


def test_headers_can_be_disabled(client, relay, monkeypatch) -> None:
    monkeypatch.setattr(settings.app, "rate_limit_include_headers", False)

    resp = _notify(client, "hello")

    assert resp.status_code == 201
    assert "X-RateLimit-Limit" not in resp.headers


def test_list_returns_newest_first(client, relay, clock) -> None:
    _notify(client, "older")
    clock.advance(1)
    _notify(client, "newer")

    resp = client.get("/api/v1/notifications", params={"token": "T"})

    assert resp.status_code == 200
    assert [n["message"] for n in resp.json()] == ["newer", "older"]


def test_list_is_scoped_to_token(client, relay) -> None:
    _notify(client, "for A", token="A")

    resp = client.get("/api/v1/notifications", params={"token": "B"})

    assert resp.status_code == 200
    assert resp.json() == []


def test_list_without_token_is_400(client, relay) -> None:
    resp = client.get("/api/v1/notifications")

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Missing token parameter"


def test_store_outage_maps_to_503(client) -> None:
    service = Mock(spec=RelayService)
    service.notifications.side_effect = StoreUnavailableError(
        code="store_unavailable",
        message="The notification store is temporarily unavailable",
        details={"backend": "sqlite", "retry_after": 1.0},
    )
    app.dependency_overrides[get_relay_service] = lambda: service
    try:
        resp = client.get("/api/v1/notifications", params={"token": "T"})
    finally:
        app.dependency_overrides.pop(get_relay_service, None)

    assert resp.status_code == 503
    assert resp.headers["Retry-After"] == "1"
    assert resp.json()["error"]["code"] == "store_unavailable"


def test_default_wiring_uses_configured_limit(client, monkeypatch) -> None:
    monkeypatch.setattr(settings.app, "rate_limit_requests", 1)

    assert _notify(client, "first", token="wired").status_code == 201
    assert _notify(client, "second", token="wired").status_code == 429

    resp = client.get("/api/v1/notifications", params={"token": "wired"})
    assert [n["message"] for n in resp.json()] == ["first"]


@pytest.mark.parametrize(
    ("header", "token"),
    [("Bearer abc", "abc"), ("abc", "abc"), ("Bearer Bearer x", "Bearer x")],
)
def test_extract_bearer_token(header: str, token: str) -> None:
    assert extract_bearer_token(header) == token
