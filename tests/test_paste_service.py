"""Unit tests for the paste lifecycle service."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from app.adapters.storage.base import StorageResult
from app.adapters.storage.memory import InMemoryPasteStore
from app.core import crypto
from app.core.errors import NotFoundAppError, StorageAppError, ValidationAppError
from app.services.paste_service import (
    NOT_FOUND_MESSAGE,
    STORAGE_ERROR_MESSAGE,
    PasteService,
    resolve_expiry,
)
from app.models.paste import ExpiryOption

VALID_SALT = crypto.salt_to_base64(b"\x01" * crypto.SALT_BYTES)


@pytest.fixture
def store(fake_clock) -> InMemoryPasteStore:
    return InMemoryPasteStore(clock=fake_clock)


@pytest.fixture
def service(store, fake_clock) -> PasteService:
    return PasteService(store, max_content_chars=100, clock=fake_clock)


@pytest.fixture
def failing_store() -> AsyncMock:
    store = AsyncMock()
    store.backend_name = "mock"
    store.create_paste.return_value = StorageResult.failure("boom: redis://user:pw@host")
    store.get_paste.return_value = StorageResult.failure("boom")
    store.delete_paste.return_value = StorageResult.failure("boom")
    store.cleanup_expired.return_value = StorageResult.failure("boom")
    store.health_check.return_value = StorageResult.failure("boom")
    return store


class TestResolveExpiry:
    @pytest.mark.parametrize(
        ("value", "hours"),
        [("1h", 1), ("24h", 24), ("7d", 168), (ExpiryOption.ONE_DAY, 24)],
    )
    def test_allowed_options(self, value, hours: int) -> None:
        assert resolve_expiry(value).duration == timedelta(hours=hours)

    @pytest.mark.parametrize("value", ["", "2h", "never", "1H"])
    def test_rejects_other_values(self, value: str) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            resolve_expiry(value)

        assert exc_info.value.code == "invalid_expiry"
        assert exc_info.value.details["allowed"] == ["1h", "24h", "7d"]


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_sets_expiry_from_option(self, service, store, fake_clock) -> None:
        paste_id = await service.create("abc", "7d", language="rust")

        record = (await store.get_paste(paste_id)).data
        assert record.expires_at == fake_clock() + timedelta(days=7)
        assert record.language == "rust"

    @pytest.mark.asyncio
    async def test_create_password_paste_keeps_salt(self, service, store) -> None:
        paste_id = await service.create("abc", "1h", has_password=True, salt=VALID_SALT)

        record = (await store.get_paste(paste_id)).data
        assert record.has_password is True
        assert record.salt == VALID_SALT

    @pytest.mark.asyncio
    async def test_content_at_limit_is_accepted(self, service) -> None:
        assert await service.create("x" * 100, "1h")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("kwargs", "code"),
        [
            ({"content": ""}, "content_empty"),
            ({"content": "x" * 101}, "content_too_large"),
            ({"expiry": "30d"}, "invalid_expiry"),
            ({"has_password": True}, "salt_required"),
            ({"has_password": True, "salt": "not base64!"}, "invalid_salt"),
            ({"has_password": True, "salt": crypto.salt_to_base64(b"short")}, "invalid_salt"),
            ({"salt": VALID_SALT}, "unexpected_salt"),
            ({"language": "l" * 33}, "language_too_long"),
        ],
    )
    async def test_invalid_input_is_rejected(self, service, store, kwargs: dict, code: str) -> None:
        args = {"content": "abc", "expiry": "24h", **kwargs}
        content = args.pop("content")
        expiry = args.pop("expiry")

        with pytest.raises(ValidationAppError) as exc_info:
            await service.create(content, expiry, **args)

        assert exc_info.value.code == code
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_too_large_reports_sizes(self, service) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            await service.create("x" * 150, "1h")

        assert exc_info.value.details == {"max_value": 100, "actual_value": 150}

    @pytest.mark.asyncio
    async def test_storage_failure_is_generic(self, failing_store) -> None:
        service = PasteService(failing_store)

        with pytest.raises(StorageAppError) as exc_info:
            await service.create("abc", "1h")

        assert exc_info.value.code == "storage_error"
        assert exc_info.value.message == STORAGE_ERROR_MESSAGE
        assert "redis://" not in str(exc_info.value)


class TestPeekAndConsume:
    @pytest.mark.asyncio
    async def test_repeated_peeks_return_same_record(self, service) -> None:
        paste_id = await service.create("abc", "1h", burn_after_read=True)

        first = await service.peek(paste_id)
        second = await service.peek(paste_id)

        assert first == second
        assert first.burn_after_read is True

    @pytest.mark.asyncio
    async def test_consume_then_peek_is_not_found(self, service) -> None:
        paste_id = await service.create("abc", "1h", burn_after_read=True)

        assert await service.consume(paste_id) is True

        with pytest.raises(NotFoundAppError):
            await service.peek(paste_id)

    @pytest.mark.asyncio
    async def test_consume_is_idempotent(self, service) -> None:
        paste_id = await service.create("abc", "1h")

        assert await service.consume(paste_id) is True
        assert await service.consume(paste_id) is False
        assert await service.consume("never-existed") is False

    @pytest.mark.asyncio
    async def test_racing_consumers_have_one_winner(self, service) -> None:
        paste_id = await service.create("abc", "1h", burn_after_read=True)

        outcomes = await asyncio.gather(*(service.consume(paste_id) for _ in range(10)))

        assert outcomes.count(True) == 1

    @pytest.mark.asyncio
    async def test_expired_and_missing_are_indistinguishable(self, service, fake_clock) -> None:
        paste_id = await service.create("abc", "1h")
        fake_clock.advance(hours=1, seconds=1)

        with pytest.raises(NotFoundAppError) as expired:
            await service.peek(paste_id)
        with pytest.raises(NotFoundAppError) as missing:
            await service.peek("unknown-id")

        assert (expired.value.code, expired.value.message) == (missing.value.code, missing.value.message)
        assert expired.value.message == NOT_FOUND_MESSAGE

    @pytest.mark.asyncio
    async def test_peek_rechecks_expiry_of_returned_record(self, fake_clock) -> None:
        # The store's clock is frozen, so it hands back the expired record
        frozen = fake_clock()
        store = InMemoryPasteStore(clock=lambda: frozen)
        service = PasteService(store, clock=fake_clock)
        paste_id = await service.create("abc", "1h")
        fake_clock.advance(hours=2)

        with pytest.raises(NotFoundAppError):
            await service.peek(paste_id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("paste_id", ["", "   "])
    async def test_blank_id_is_validation_error(self, service, paste_id: str) -> None:
        with pytest.raises(ValidationAppError):
            await service.peek(paste_id)
        with pytest.raises(ValidationAppError):
            await service.consume(paste_id)

    @pytest.mark.asyncio
    async def test_storage_failures_surface(self, failing_store) -> None:
        service = PasteService(failing_store)

        with pytest.raises(StorageAppError):
            await service.peek("abc")
        with pytest.raises(StorageAppError):
            await service.consume("abc")


class TestMaintenance:
    @pytest.mark.asyncio
    async def test_sweep_returns_deleted_count(self, service, fake_clock) -> None:
        await service.create("a", "1h")
        await service.create("b", "24h")
        fake_clock.advance(hours=2)

        assert await service.sweep_expired() == 1

    @pytest.mark.asyncio
    async def test_sweep_failure_is_logged_not_raised(self, failing_store) -> None:
        service = PasteService(failing_store)

        with patch("app.services.paste_service.logger") as mock_logger:
            assert await service.sweep_expired() == 0

        mock_logger.error.assert_called_once()
        assert mock_logger.error.call_args.args[0] == "paste.sweep_failed"

    @pytest.mark.asyncio
    async def test_health(self, service, failing_store) -> None:
        assert await service.health() is True
        assert await PasteService(failing_store).health() is False

    @pytest.mark.asyncio
    async def test_periodic_sweep_survives_errors_and_cancels(self, failing_store) -> None:
        calls: list[int] = []

        async def cleanup() -> StorageResult[int]:
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")
            return StorageResult.success(0)

        failing_store.cleanup_expired.side_effect = cleanup
        service = PasteService(failing_store)

        with patch("app.services.paste_service.logger") as mock_logger:
            task = asyncio.create_task(service.run_periodic_sweep(0.01))
            await asyncio.sleep(0.1)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        mock_logger.exception.assert_called_once_with("paste.sweep_crashed")
        assert failing_store.cleanup_expired.await_count >= 2
