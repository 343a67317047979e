"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    max_value: int
    actual_value: int
    allowed: list[str]
    http_status: int
    retry_after: int
    limit: int
    remaining: int
    reset_in_ms: int
    action_class: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class NotFoundAppError(AppError):
    """Raised when a paste is missing or expired; the two cases look the same."""


class StorageAppError(AppError):
    """Raised when the backing store is unavailable or an operation failed."""


class RateLimitAppError(AppError):
    """Raised when a client exceeds its request budget for an action class."""


class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""


class CryptoAppError(AppError):
    """Base error for client-side encryption failures. Never retried."""


class CiphertextAuthenticationError(CryptoAppError):
    """Raised when the AEAD tag does not verify (wrong key or tampered data)."""


class CiphertextFormatError(CryptoAppError):
    """Raised when a ciphertext blob or key is malformed."""
