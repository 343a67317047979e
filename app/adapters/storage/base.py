"""Paste store interface.

Stores never raise past their boundary: every operation returns a
``StorageResult`` so the service layer decides how failures surface.

Concurrency contract:
    Two callers racing to delete the same burn-after-read paste must observe
    at most one ``delete_paste`` result with ``data=True``. Stores without a
    native test-and-delete must use a conditional delete that reports the
    number of affected rows/keys.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, TypeVar

from app.models.paste import NewPaste, PasteRecord

T = TypeVar("T")

# Attempts at allocating a fresh id before giving up on a create
MAX_ID_ATTEMPTS = 5


@dataclass(frozen=True)
class StorageResult(Generic[T]):
    """Tagged success/failure result of a store operation.

    Attributes:
        ok: Whether the operation succeeded.
        data: Payload on success.
        error: Backend failure description on failure (logged, never shown
            to API clients).
    """

    ok: bool
    data: T | None = None
    error: str | None = None

    @classmethod
    def success(cls, data: T | None = None) -> "StorageResult[T]":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: str) -> "StorageResult[T]":
        return cls(ok=False, error=error)


class AbstractPasteStore(ABC):
    """Interface for paste stores."""

    backend_name: str = "abstract"

    @abstractmethod
    async def create_paste(self, new: NewPaste) -> StorageResult[str]:
        """Persist a new paste under a freshly allocated id.

        Returns:
            StorageResult carrying the new id.
        """
        raise NotImplementedError

    @abstractmethod
    async def get_paste(self, paste_id: str) -> StorageResult[PasteRecord | None]:
        """Fetch a paste; ``data`` is None when absent or past ``expires_at``.

        Must not delete burn-after-read pastes as a side effect.
        """
        raise NotImplementedError

    @abstractmethod
    async def delete_paste(self, paste_id: str) -> StorageResult[bool]:
        """Delete a paste. Idempotent.

        Returns:
            StorageResult whose ``data`` is True iff this call removed it.
        """
        raise NotImplementedError

    @abstractmethod
    async def cleanup_expired(self) -> StorageResult[int]:
        """Delete every paste with ``expires_at < now``; returns the count."""
        raise NotImplementedError

    @abstractmethod
    async def health_check(self) -> StorageResult[None]:
        """Report backend reachability."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release connections held by the store."""
        return None
