"""Integration tests for the admin maintenance routes."""

import asyncio
from datetime import timedelta

from fastapi.testclient import TestClient

from app.models.paste import NewPaste, utcnow


def test_cleanup_requires_api_key(client: TestClient) -> None:
    response = client.post("/api/admin/cleanup")

    assert response.status_code == 403
    assert "Missing API key" in response.json()["detail"]


def test_cleanup_rejects_wrong_key(client: TestClient) -> None:
    response = client.post("/api/admin/cleanup", headers={"X-API-Key": "nope"})

    assert response.status_code == 403


def test_cleanup_deletes_expired_pastes(client: TestClient, memory_store, admin_headers) -> None:
    now = utcnow()
    asyncio.run(memory_store.create_paste(NewPaste(content="old", expires_at=now - timedelta(minutes=5))))
    asyncio.run(memory_store.create_paste(NewPaste(content="new", expires_at=now + timedelta(hours=1))))

    response = client.post("/api/admin/cleanup", headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == {"deleted": 1}
    assert len(memory_store) == 1


def test_status_reports_backend(client: TestClient, admin_headers) -> None:
    response = client.get("/api/admin/status", headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == {"backend": "memory", "healthy": True}


def test_paste_routes_need_no_api_key(client: TestClient) -> None:
    response = client.post("/api/paste", json={"content": "abc", "expiry": "1h"})

    assert response.status_code == 201
