from __future__ import annotations

import uuid

from fastapi.testclient import TestClient

from app.core.app_factory import create_app
from app.core.config import AppSettings, LogSettings, Settings, StorageSettings


def test_preserves_incoming_request_id_header(client: TestClient):
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing(client: TestClient):
    resp = client.get("/health")

    assert resp.status_code == 200
    generated = resp.headers.get("X-Request-ID")
    assert uuid.UUID(generated)

    duration = resp.headers.get("X-Request-Duration-ms")
    assert duration is not None
    assert float(duration) >= 0


def test_replaces_overlong_request_id(client: TestClient):
    incoming = "x" * 129
    resp = client.get("/health", headers={"X-Request-ID": incoming})

    assert resp.headers["X-Request-ID"] != incoming
    assert uuid.UUID(resp.headers["X-Request-ID"])


def test_request_id_is_echoed_in_error_body(client: TestClient):
    resp = client.get("/api/paste/missing1", headers={"X-Request-ID": "trace-me"})

    assert resp.status_code == 404
    assert resp.headers["X-Request-ID"] == "trace-me"
    assert resp.json()["error"]["request_id"] == "trace-me"


def test_header_name_comes_from_app_settings():
    app_settings = Settings(
        log=LogSettings(level="WARNING", request_id_header="X-Correlation-ID"),
        storage=StorageSettings(backend="memory"),
        app=AppSettings(sweep_interval_seconds=0, rate_limit_enabled=False),
    )

    with TestClient(create_app(app_settings)) as custom_client:
        resp = custom_client.get("/health", headers={"X-Correlation-ID": "corr-1"})

    assert resp.headers["X-Correlation-ID"] == "corr-1"
    assert "X-Request-ID" not in resp.headers
