"""Unit tests for admin API key authentication."""

from unittest.mock import Mock

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from app.core.app_factory import create_app
from app.core.auth import parse_api_keys, validate_api_key, verify_api_key
from app.core.config import AppSettings
from app.core.errors import AuthenticationAppError


def _request_for(app_settings: AppSettings) -> Mock:
    request = Mock()
    request.app.state.settings.app = app_settings
    return request


class TestParseAPIKeys:
    """Test API key parsing utility function."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("my-secret-key", {"my-secret-key"}),
            ("key1,key2,key3", {"key1", "key2", "key3"}),
            ("key1 , key2  ,  key3", {"key1", "key2", "key3"}),
            ("key1,key2,key1", {"key1", "key2"}),
            (None, set()),
            ("", set()),
            ("   ,  ,  ", set()),
        ],
    )
    def test_parse(self, raw, expected: set) -> None:
        assert parse_api_keys(raw) == expected


class TestValidateAPIKey:
    """Test core API key validation logic."""

    def test_validate_bypassed_when_auth_disabled(self) -> None:
        app_settings = AppSettings(api_key_required=False)

        # Should not raise even with invalid key
        validate_api_key("any-random-key", app_settings)
        validate_api_key("", app_settings)

    @pytest.mark.parametrize("configured", [None, "", " , "])
    def test_validate_raises_when_no_keys_configured(self, configured) -> None:
        app_settings = AppSettings(api_key_required=True, api_keys=configured)

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key("some-key", app_settings)

        assert exc_info.value.code == "api_keys_not_configured"

    def test_validate_accepts_any_configured_key(self) -> None:
        app_settings = AppSettings(api_key_required=True, api_keys=" ops-key-1 , ops-key-2 ")

        validate_api_key("ops-key-1", app_settings)
        validate_api_key("ops-key-2", app_settings)

    @pytest.mark.parametrize("provided", ["wrong", "", " ops-key-1 ", "ops-key-1x"])
    def test_validate_rejects_other_keys(self, provided: str) -> None:
        app_settings = AppSettings(api_key_required=True, api_keys="ops-key-1")

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key(provided, app_settings)

        assert exc_info.value.code == "invalid_api_key"
        assert exc_info.value.message == "Invalid or missing API key"


class TestVerifyAPIKeyDependency:
    """Test FastAPI dependency for API key verification."""

    @pytest.mark.asyncio
    async def test_verify_bypassed_when_auth_disabled(self) -> None:
        request = _request_for(AppSettings(api_key_required=False))

        await verify_api_key(request, x_api_key=None)

    @pytest.mark.asyncio
    async def test_verify_raises_403_when_header_missing(self) -> None:
        request = _request_for(AppSettings(api_key_required=True, api_keys="valid-key"))

        with pytest.raises(HTTPException) as exc_info:
            await verify_api_key(request, x_api_key=None)

        assert exc_info.value.status_code == 403
        assert "Missing API key" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_verify_raises_403_when_key_invalid(self) -> None:
        request = _request_for(AppSettings(api_key_required=True, api_keys="valid-key"))

        with pytest.raises(HTTPException) as exc_info:
            await verify_api_key(request, x_api_key="wrong-key")

        assert exc_info.value.status_code == 403
        assert exc_info.value.detail == "Invalid or missing API key"

    @pytest.mark.asyncio
    async def test_verify_accepts_valid_key(self) -> None:
        request = _request_for(AppSettings(api_key_required=True, api_keys="valid-key"))

        await verify_api_key(request, x_api_key="valid-key")


class TestPerAppSettings:
    """Each app authenticates against the settings it was created with."""

    def test_app_uses_its_own_keys(self, make_settings) -> None:
        app = create_app(make_settings(api_keys="scoped-key", rate_limit_enabled=False))

        with TestClient(app) as client:
            assert client.post("/api/admin/cleanup", headers={"X-API-Key": "scoped-key"}).status_code == 200
            rejected = client.post("/api/admin/cleanup", headers={"X-API-Key": "test-api-key-123"})

        assert rejected.status_code == 403

    def test_app_with_auth_disabled_needs_no_key(self, make_settings) -> None:
        app = create_app(make_settings(api_key_required=False, rate_limit_enabled=False))

        with TestClient(app) as client:
            assert client.post("/api/admin/cleanup").status_code == 200
