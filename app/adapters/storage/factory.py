"""Factory pattern for creating paste store instances."""

import logging

from app.adapters.storage.base import AbstractPasteStore
from app.adapters.storage.memory import InMemoryPasteStore
from app.adapters.storage.redis_store import RedisPasteStore
from app.adapters.storage.sql import SqlPasteStore
from app.core.config import StorageSettings
from app.core.errors import ValidationAppError

logger = logging.getLogger(__name__)

SUPPORTED_BACKENDS = ("memory", "redis", "sql")


def create_paste_store(storage_settings: StorageSettings) -> AbstractPasteStore:
    """Instantiate the paste store selected by configuration.

    Validates backend-specific requirements and routes to the matching
    implementation.

    Returns:
        AbstractPasteStore: Configured store instance.

    Raises:
        ValidationAppError: If the backend is unknown or its URL is missing.
    """
    backend = storage_settings.backend.lower().strip()

    if backend == "memory":
        logger.warning(
            "storage.memory_selected",
            extra={"hint": "data is lost on restart and not shared across workers"},
        )
        return InMemoryPasteStore()

    if backend in ("redis", "sql") and not storage_settings.url:
        raise ValidationAppError(
            code="storage_missing_url",
            message=f"STORAGE_URL is required when STORAGE_BACKEND={backend}",
        )

    if backend == "redis":
        return RedisPasteStore.from_url(
            storage_settings.url,
            key_prefix=storage_settings.key_prefix,
        )

    if backend == "sql":
        return SqlPasteStore.from_url(storage_settings.url)

    raise ValidationAppError(
        code="storage_unknown_backend",
        message=(
            f"Unknown storage backend: '{backend}'. "
            f"Supported backends: {', '.join(SUPPORTED_BACKENDS)}"
        ),
    )
