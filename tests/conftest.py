"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment variables are set before any app import so that the global
settings object is built from test values.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("APP_API_KEY_REQUIRED", "true")
os.environ.setdefault("APP_API_KEYS", "test-api-key-123,test-api-key-456")
os.environ.setdefault("APP_SWEEP_INTERVAL_SECONDS", "0")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator

import pytest
from fastapi.testclient import TestClient

from app.adapters.storage.memory import InMemoryPasteStore
from app.core.app_factory import create_app
from app.core.config import AppSettings, LogSettings, Settings, StorageSettings


class FakeClock:
    """Deterministic UTC clock used to test expiry logic."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Build isolated Settings; keyword args override AppSettings fields."""

    def _make(**app_overrides) -> Settings:
        app_values = {"sweep_interval_seconds": 0, **app_overrides}
        return Settings(
            log=LogSettings(level="WARNING"),
            storage=StorageSettings(backend="memory"),
            app=AppSettings(**app_values),
        )

    return _make


@pytest.fixture
def memory_store() -> InMemoryPasteStore:
    return InMemoryPasteStore()


@pytest.fixture
def client(make_settings, memory_store) -> Iterator[TestClient]:
    """Test client with a running lifespan and rate limiting disabled."""
    app = create_app(make_settings(rate_limit_enabled=False), store=memory_store)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-API-Key": "test-api-key-123"}
