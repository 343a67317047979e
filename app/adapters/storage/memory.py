"""In-memory paste store for development and tests.

Notes:
- Per-process only: data is lost on restart and not shared across workers.
- Thread-safe: uses a lock around shared state.
- No native TTL: expired pastes are dropped lazily on read and by
  ``cleanup_expired``.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Callable

from app.adapters.storage.base import (
    MAX_ID_ATTEMPTS,
    AbstractPasteStore,
    StorageResult,
)
from app.models.paste import NewPaste, PasteRecord, generate_paste_id, utcnow

logger = logging.getLogger(__name__)


class InMemoryPasteStore(AbstractPasteStore):
    """Dict-backed paste store."""

    backend_name = "memory"

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = generate_paste_id,
    ) -> None:
        self._clock = clock
        self._id_factory = id_factory
        self._pastes: dict[str, PasteRecord] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._pastes)

    async def create_paste(self, new: NewPaste) -> StorageResult[str]:
        with self._lock:
            for _ in range(MAX_ID_ATTEMPTS):
                paste_id = self._id_factory()
                if paste_id not in self._pastes:
                    break
            else:
                return StorageResult.failure("could not allocate a unique paste id")

            self._pastes[paste_id] = PasteRecord.from_new(paste_id, new, self._clock())

        logger.debug("storage.memory.created", extra={"paste_id": paste_id})
        return StorageResult.success(paste_id)

    async def get_paste(self, paste_id: str) -> StorageResult[PasteRecord | None]:
        with self._lock:
            record = self._pastes.get(paste_id)
            if record is None:
                return StorageResult.success(None)

            if record.is_expired(self._clock()):
                self._pastes.pop(paste_id, None)
                logger.debug(
                    "storage.memory.expired_on_read",
                    extra={"paste_id": paste_id},
                )
                return StorageResult.success(None)

            # Burn-after-read pastes stay until delete_paste is called explicitly.
            return StorageResult.success(record)

    async def delete_paste(self, paste_id: str) -> StorageResult[bool]:
        with self._lock:
            removed = self._pastes.pop(paste_id, None) is not None
        return StorageResult.success(removed)

    async def cleanup_expired(self) -> StorageResult[int]:
        now = self._clock()
        with self._lock:
            expired_ids = [
                paste_id
                for paste_id, record in self._pastes.items()
                if record.is_expired(now)
            ]
            for paste_id in expired_ids:
                self._pastes.pop(paste_id, None)
        return StorageResult.success(len(expired_ids))

    async def health_check(self) -> StorageResult[None]:
        return StorageResult.success()

    async def close(self) -> None:
        with self._lock:
            self._pastes.clear()
