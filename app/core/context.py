"""Explicitly scoped service context.

Holds the per-application state (paste store, paste service, rate limiter)
instead of module globals. One context is built per FastAPI app in its
lifespan and torn down on shutdown, so each test app starts clean.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from fastapi import Request

from app.adapters.rate_limit.base import AbstractRateLimiter, ActionClass, LimitConfig
from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from app.adapters.storage.base import AbstractPasteStore
from app.adapters.storage.factory import create_paste_store
from app.core.config import Settings
from app.services.paste_service import PasteService

logger = logging.getLogger(__name__)


def build_limit_configs(settings: Settings) -> dict[ActionClass, LimitConfig]:
    """Per-action-class budgets; creation is throttled hardest."""
    window_ms = settings.app.rate_limit_window_ms
    return {
        ActionClass.CREATE: LimitConfig(settings.app.rate_limit_create_requests, window_ms),
        ActionClass.READ: LimitConfig(settings.app.rate_limit_read_requests, window_ms),
        ActionClass.DEFAULT: LimitConfig(settings.app.rate_limit_default_requests, window_ms),
    }


@dataclass
class ServiceContext:
    """Everything a request handler needs, with an explicit lifetime."""

    settings: Settings
    store: AbstractPasteStore
    pastes: PasteService
    rate_limiter: AbstractRateLimiter
    limit_configs: dict[ActionClass, LimitConfig]
    _sweep_task: asyncio.Task | None = field(default=None, repr=False)

    @classmethod
    def build(
        cls,
        settings: Settings,
        *,
        store: AbstractPasteStore | None = None,
        rate_limiter: AbstractRateLimiter | None = None,
    ) -> "ServiceContext":
        """Construct a context from settings; tests may inject collaborators."""
        store = store or create_paste_store(settings.storage)
        rate_limiter = rate_limiter or InMemoryFixedWindowRateLimiter(
            gc_interval_ms=settings.app.rate_limit_gc_interval_seconds * 1000,
        )
        pastes = PasteService(
            store,
            max_content_chars=settings.app.max_content_chars,
            max_language_chars=settings.app.max_language_chars,
        )
        logger.info(
            "context.initialized",
            extra={
                "backend": store.backend_name,
                "rate_limit_enabled": settings.app.rate_limit_enabled,
            },
        )
        return cls(
            settings=settings,
            store=store,
            pastes=pastes,
            rate_limiter=rate_limiter,
            limit_configs=build_limit_configs(settings),
        )

    def limit_for(self, action_class: ActionClass) -> LimitConfig:
        return self.limit_configs.get(action_class, self.limit_configs[ActionClass.DEFAULT])

    def start_background_tasks(self) -> None:
        interval = self.settings.app.sweep_interval_seconds
        if interval > 0 and self._sweep_task is None:
            self._sweep_task = asyncio.create_task(self.pastes.run_periodic_sweep(interval))

    async def close(self) -> None:
        """Stop background work and release the store."""
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None
        await self.store.close()
        self.rate_limiter.reset()
        logger.info("context.closed", extra={"backend": self.store.backend_name})


def get_context(request: Request) -> ServiceContext:
    """FastAPI dependency returning the context bound to the running app."""
    return request.app.state.context


def get_paste_service(request: Request) -> PasteService:
    return get_context(request).pastes
