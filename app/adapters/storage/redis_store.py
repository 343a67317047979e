"""Redis paste store.

Pastes are JSON strings under ``{prefix}paste:{id}`` written with
``SET NX PX`` so Redis expires them natively. ``DEL`` returns the number of
keys removed, which gives racing consumers a single winner.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Callable

from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.adapters.storage.base import (
    MAX_ID_ATTEMPTS,
    AbstractPasteStore,
    StorageResult,
)
from app.models.paste import NewPaste, PasteRecord, generate_paste_id, utcnow

logger = logging.getLogger(__name__)


class RedisPasteStore(AbstractPasteStore):
    """Paste store backed by Redis with native key expiry."""

    backend_name = "redis"

    def __init__(
        self,
        client: Redis,
        *,
        key_prefix: str = "cloakbin:",
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = generate_paste_id,
    ) -> None:
        self._client = client
        self._key_prefix = key_prefix
        self._clock = clock
        self._id_factory = id_factory

    @classmethod
    def from_url(cls, url: str, *, key_prefix: str = "cloakbin:") -> "RedisPasteStore":
        """Build a store from a ``redis://`` or ``rediss://`` URL."""
        client = Redis.from_url(url, decode_responses=True)
        return cls(client, key_prefix=key_prefix)

    def _key(self, paste_id: str) -> str:
        return f"{self._key_prefix}paste:{paste_id}"

    async def create_paste(self, new: NewPaste) -> StorageResult[str]:
        now = self._clock()
        # PX must be positive; an already-past expiry lives for 1ms
        ttl_ms = max(1, int((new.expires_at - now).total_seconds() * 1000))

        try:
            for _ in range(MAX_ID_ATTEMPTS):
                paste_id = self._id_factory()
                record = PasteRecord.from_new(paste_id, new, now)
                stored = await self._client.set(
                    self._key(paste_id),
                    json.dumps(record.to_dict()),
                    px=ttl_ms,
                    nx=True,
                )
                if stored:
                    return StorageResult.success(paste_id)
        except RedisError as exc:
            return StorageResult.failure(f"redis create failed: {exc}")

        return StorageResult.failure("could not allocate a unique paste id")

    async def get_paste(self, paste_id: str) -> StorageResult[PasteRecord | None]:
        try:
            raw = await self._client.get(self._key(paste_id))
        except RedisError as exc:
            return StorageResult.failure(f"redis get failed: {exc}")

        if raw is None:
            return StorageResult.success(None)

        try:
            record = PasteRecord.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as exc:
            return StorageResult.failure(f"redis record is corrupt: {exc}")

        # Native TTL normally wins; this covers clock skew between app and Redis.
        if record.is_expired(self._clock()):
            return StorageResult.success(None)

        return StorageResult.success(record)

    async def delete_paste(self, paste_id: str) -> StorageResult[bool]:
        try:
            removed = await self._client.delete(self._key(paste_id))
        except RedisError as exc:
            return StorageResult.failure(f"redis delete failed: {exc}")
        return StorageResult.success(bool(removed))

    async def cleanup_expired(self) -> StorageResult[int]:
        # Redis TTL handles this automatically
        logger.debug("storage.redis.cleanup_skipped", extra={"reason": "native_ttl"})
        return StorageResult.success(0)

    async def health_check(self) -> StorageResult[None]:
        try:
            await self._client.ping()
        except RedisError as exc:
            return StorageResult.failure(f"redis ping failed: {exc}")
        return StorageResult.success()

    async def close(self) -> None:
        await self._client.aclose()
