"""Tests for the per-action-class rate limiting dependency."""

from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from app.core.app_factory import create_app
from app.core.rate_limit import LOOPBACK_IDENTITY, resolve_client_identity

PASTE = {"content": "abc", "expiry": "1h"}


def _request(headers: dict[str, str]) -> Request:
    raw = [(name.lower().encode(), value.encode()) for name, value in headers.items()]
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw})


@pytest.mark.parametrize(
    ("headers", "expected"),
    [
        ({"CF-Connecting-IP": "203.0.113.7", "X-Forwarded-For": "10.0.0.1"}, "203.0.113.7"),
        ({"X-Real-IP": "198.51.100.2", "X-Forwarded-For": "10.0.0.1"}, "198.51.100.2"),
        ({"X-Forwarded-For": "192.0.2.1, 10.0.0.1, 10.0.0.2"}, "192.0.2.1"),
        ({"X-Forwarded-For": " , 10.0.0.1"}, LOOPBACK_IDENTITY),
        ({}, LOOPBACK_IDENTITY),
    ],
)
def test_resolve_client_identity(headers: dict, expected: str) -> None:
    assert resolve_client_identity(_request(headers)) == expected


@pytest.fixture
def limited_client(make_settings, memory_store):
    clock = Mock(return_value=1000.0)
    app = create_app(
        make_settings(
            rate_limit_create_requests=2,
            rate_limit_read_requests=3,
            rate_limit_window_ms=60_000,
        ),
        store=memory_store,
        rate_limiter=InMemoryFixedWindowRateLimiter(clock=clock),
    )
    with TestClient(app) as client:
        client.clock = clock
        yield client


def test_create_budget_exhausted_returns_429(limited_client: TestClient) -> None:
    assert limited_client.post("/api/paste", json=PASTE).status_code == 201
    assert limited_client.post("/api/paste", json=PASTE).status_code == 201

    limited_client.clock.return_value = 1015.0
    response = limited_client.post("/api/paste", json=PASTE)

    assert response.status_code == 429
    assert response.headers["Retry-After"] == "45"
    assert response.headers["X-RateLimit-Limit"] == "2"
    assert response.headers["X-RateLimit-Remaining"] == "0"
    assert response.headers["X-RateLimit-Reset-Ms"] == "45000"
    error = response.json()["error"]
    assert error["code"] == "rate_limit_exceeded"
    assert error["details"]["action_class"] == "create"


def test_budget_recovers_after_window(limited_client: TestClient) -> None:
    for _ in range(2):
        limited_client.post("/api/paste", json=PASTE)
    assert limited_client.post("/api/paste", json=PASTE).status_code == 429

    limited_client.clock.return_value = 1060.0
    assert limited_client.post("/api/paste", json=PASTE).status_code == 201


def test_budgets_are_per_client(limited_client: TestClient) -> None:
    for _ in range(2):
        limited_client.post("/api/paste", json=PASTE)
    assert limited_client.post("/api/paste", json=PASTE).status_code == 429

    other = limited_client.post("/api/paste", json=PASTE, headers={"X-Forwarded-For": "192.0.2.50"})
    assert other.status_code == 201


def test_budgets_are_per_action_class(limited_client: TestClient) -> None:
    paste_id = limited_client.post("/api/paste", json=PASTE).json()["id"]
    limited_client.post("/api/paste", json=PASTE)
    assert limited_client.post("/api/paste", json=PASTE).status_code == 429

    for _ in range(3):
        assert limited_client.get(f"/api/paste/{paste_id}").status_code == 200
    assert limited_client.get(f"/api/paste/{paste_id}").status_code == 429

    # Deletes draw on the default budget
    assert limited_client.delete(f"/api/paste/{paste_id}").status_code == 200


def test_health_is_not_rate_limited(limited_client: TestClient) -> None:
    for _ in range(20):
        assert limited_client.get("/health").status_code == 200


def test_headers_can_be_disabled(make_settings, memory_store) -> None:
    app = create_app(
        make_settings(rate_limit_create_requests=1, rate_limit_include_headers=False),
        store=memory_store,
    )

    with TestClient(app) as client:
        client.post("/api/paste", json=PASTE)
        response = client.post("/api/paste", json=PASTE)

    assert response.status_code == 429
    assert "Retry-After" not in response.headers
    assert "X-RateLimit-Limit" not in response.headers
    assert response.json()["error"]["details"]["retry_after"] >= 1


def test_disabled_rate_limiting_never_throttles(client: TestClient) -> None:
    for _ in range(15):
        assert client.post("/api/paste", json=PASTE).status_code == 201
