"""Paste lifecycle service: the only caller of the paste store.

Enforces the business rules uniformly across backends:
- Input validation (size ceiling, expiry options, password/salt pairing)
- Expiry on access (expired and missing pastes are indistinguishable)
- Two-phase burn-after-read: ``peek`` never mutates, ``consume`` deletes
- Background sweeping of expired pastes

Storage failures surface as ``StorageAppError`` with a generic message; the
backend detail is logged. Nothing is retried here.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable

from app.adapters.storage.base import AbstractPasteStore
from app.core.crypto import salt_from_base64
from app.core.errors import (
    CiphertextFormatError,
    NotFoundAppError,
    StorageAppError,
    ValidationAppError,
)
from app.models.paste import ExpiryOption, NewPaste, PasteRecord, utcnow

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONTENT_CHARS = 100_000_000
DEFAULT_MAX_LANGUAGE_CHARS = 32

NOT_FOUND_MESSAGE = "Paste not found or has expired"
STORAGE_ERROR_MESSAGE = "Storage backend error. Please try again later."


def resolve_expiry(expiry: ExpiryOption | str) -> ExpiryOption:
    """Map a caller-supplied selector onto an ``ExpiryOption``.

    Raises:
        ValidationAppError: If the selector is not one of the allowed options.
    """
    try:
        return ExpiryOption(expiry)
    except ValueError as exc:
        allowed = [option.value for option in ExpiryOption]
        raise ValidationAppError(
            code="invalid_expiry",
            message='Expiry must be one of: "1h", "24h", "7d"',
            details={"allowed": allowed},
        ) from exc


class PasteService:
    """Create, read and retire pastes against one store.

    Attributes:
        store: Backing paste store.
        max_content_chars: Ciphertext size ceiling.
    """

    def __init__(
        self,
        store: AbstractPasteStore,
        *,
        max_content_chars: int = DEFAULT_MAX_CONTENT_CHARS,
        max_language_chars: int = DEFAULT_MAX_LANGUAGE_CHARS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.max_content_chars = max_content_chars
        self.max_language_chars = max_language_chars
        self._clock = clock

    def _storage_error(self, operation: str, error: str | None, paste_id: str | None = None) -> StorageAppError:
        logger.error(
            "storage.error",
            extra={
                "operation": operation,
                "backend": self.store.backend_name,
                "paste_id": paste_id,
                "error_detail": error,
            },
        )
        return StorageAppError(code="storage_error", message=STORAGE_ERROR_MESSAGE)

    def _validate_content(self, content: str) -> None:
        if not isinstance(content, str):
            raise ValidationAppError(
                code="invalid_content",
                message="Content must be a string",
            )
        if not content:
            raise ValidationAppError(
                code="content_empty",
                message="Content cannot be empty",
            )
        if len(content) > self.max_content_chars:
            raise ValidationAppError(
                code="content_too_large",
                message=f"Content exceeds maximum size of {self.max_content_chars} characters",
                details={
                    "max_value": self.max_content_chars,
                    "actual_value": len(content),
                },
            )

    def _validate_password_fields(self, has_password: bool, salt: str | None) -> None:
        """Enforce ``has_password`` iff a well-formed 16-byte salt is present."""
        if not has_password:
            if salt is not None:
                raise ValidationAppError(
                    code="unexpected_salt",
                    message="Salt must only be provided for password-protected pastes",
                )
            return

        if not salt:
            raise ValidationAppError(
                code="salt_required",
                message="Password-protected pastes require a salt",
            )
        try:
            salt_from_base64(salt)
        except CiphertextFormatError as exc:
            raise ValidationAppError(code="invalid_salt", message=exc.message) from exc

    def _validate_language(self, language: str | None) -> None:
        if language is not None and len(language) > self.max_language_chars:
            raise ValidationAppError(
                code="language_too_long",
                message=f"Language tag exceeds {self.max_language_chars} characters",
                details={
                    "max_value": self.max_language_chars,
                    "actual_value": len(language),
                },
            )

    @staticmethod
    def _validate_id(paste_id: str) -> None:
        if not paste_id or not paste_id.strip():
            raise ValidationAppError(code="invalid_paste_id", message="Invalid paste ID")

    async def create(
        self,
        content: str,
        expiry: ExpiryOption | str,
        *,
        has_password: bool = False,
        salt: str | None = None,
        burn_after_read: bool = False,
        language: str | None = None,
    ) -> str:
        """Validate and store a new paste.

        Args:
            content: Client-side encrypted ciphertext.
            expiry: One of ``ExpiryOption``.
            has_password: Key was derived from a password.
            salt: Base64 PBKDF2 salt (required iff ``has_password``).
            burn_after_read: Delete after the first acknowledged read.
            language: Cosmetic content-type tag.

        Returns:
            The new paste id.

        Raises:
            ValidationAppError: If any input is invalid.
            StorageAppError: If the store fails.
        """
        self._validate_content(content)
        option = resolve_expiry(expiry)
        self._validate_password_fields(has_password, salt)
        self._validate_language(language)

        new = NewPaste(
            content=content,
            expires_at=self._clock() + option.duration,
            has_password=has_password,
            salt=salt if has_password else None,
            burn_after_read=burn_after_read,
            language=language,
        )

        result = await self.store.create_paste(new)
        if not result.ok or result.data is None:
            raise self._storage_error("create", result.error)

        logger.info(
            "paste.created",
            extra={
                "paste_id": result.data,
                "expiry": option.value,
                "content_chars": len(content),
                "has_password": has_password,
                "burn_after_read": burn_after_read,
            },
        )
        return result.data

    async def peek(self, paste_id: str) -> PasteRecord:
        """Return a readable paste without changing any state.

        Raises:
            NotFoundAppError: If the paste is missing or expired.
            StorageAppError: If the store fails.
        """
        self._validate_id(paste_id)

        result = await self.store.get_paste(paste_id)
        if not result.ok:
            raise self._storage_error("get", result.error, paste_id)

        record = result.data
        if record is None or record.is_expired(self._clock()):
            logger.info("paste.not_found", extra={"paste_id": paste_id})
            raise NotFoundAppError(code="paste_not_found", message=NOT_FOUND_MESSAGE)

        logger.info(
            "paste.read",
            extra={"paste_id": paste_id, "burn_after_read": record.burn_after_read},
        )
        return record

    async def consume(self, paste_id: str) -> bool:
        """Delete a paste after its reader acknowledged the content.

        For burn-after-read pastes this is the second phase of the read; for
        other pastes it is a plain delete. Idempotent.

        Returns:
            True iff this call removed the paste. Among racing consumers of
            one paste at most one gets True.

        Raises:
            StorageAppError: If the store fails.
        """
        self._validate_id(paste_id)

        result = await self.store.delete_paste(paste_id)
        if not result.ok:
            raise self._storage_error("delete", result.error, paste_id)

        consumed = bool(result.data)
        logger.info("paste.consumed", extra={"paste_id": paste_id, "deleted": consumed})
        return consumed

    async def sweep_expired(self) -> int:
        """Delete expired pastes; failures are logged and reported as 0."""
        result = await self.store.cleanup_expired()
        if not result.ok:
            logger.error(
                "paste.sweep_failed",
                extra={"backend": self.store.backend_name, "error_detail": result.error},
            )
            return 0

        deleted = result.data or 0
        logger.info(
            "paste.sweep_completed",
            extra={"backend": self.store.backend_name, "deleted": deleted},
        )
        return deleted

    async def health(self) -> bool:
        """Report whether the store is reachable."""
        result = await self.store.health_check()
        if not result.ok:
            logger.warning(
                "storage.unhealthy",
                extra={"backend": self.store.backend_name, "error_detail": result.error},
            )
        return result.ok

    async def run_periodic_sweep(self, interval_seconds: float) -> None:
        """Sweep expired pastes forever; cancelled by the app lifespan."""
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await self.sweep_expired()
            except Exception:
                # Keep the loop alive; the serving path never depends on it.
                logger.exception("paste.sweep_crashed")
