"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- A window starts at a key's first request and lasts ``window_ms``. Requests
  at the end of one window plus the start of the next can reach 2x the limit.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, LimitConfig, RateLimitResult

logger = logging.getLogger(__name__)

DEFAULT_GC_INTERVAL_MS = 5 * 60 * 1000


@dataclass
class _WindowState:
    count: int
    window_reset_at_ms: int


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter using a fixed time window per ``(identity, action_class)``.

    O(1) memory and time per check. Stale entries are removed at most once per
    ``gc_interval_ms``, bounding memory to recently active clients.

    Important:
        This limiter is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits.
    """

    def __init__(
        self,
        *,
        gc_interval_ms: int = DEFAULT_GC_INTERVAL_MS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            gc_interval_ms: Minimum interval between stale-entry sweeps.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If gc_interval_ms is invalid.
        """
        if gc_interval_ms < 1:
            raise ValueError("gc_interval_ms must be >= 1")

        self._gc_interval_ms = gc_interval_ms
        self._clock = clock
        self._lock = threading.RLock()
        self._state_by_key: dict[tuple[str, str], _WindowState] = {}
        self._last_gc_ms = self._now_ms()

    def __len__(self) -> int:
        with self._lock:
            return len(self._state_by_key)

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _build_allowed_result(
        self, *, limit: int, remaining: int, reset_in_ms: int
    ) -> RateLimitResult:
        """Build a RateLimitResult for an allowed request."""
        return RateLimitResult(
            allowed=True,
            limit=limit,
            remaining=remaining,
            reset_in_ms=reset_in_ms,
            retry_after_seconds=None,
        )

    def _build_blocked_result(self, *, limit: int, reset_in_ms: int) -> RateLimitResult:
        """Build a RateLimitResult for a blocked request."""
        return RateLimitResult(
            allowed=False,
            limit=limit,
            remaining=0,
            reset_in_ms=reset_in_ms,
            retry_after_seconds=max(1, math.ceil(reset_in_ms / 1000)),
        )

    def _gc_locked(self, now_ms: int) -> int:
        stale = [
            key
            for key, state in self._state_by_key.items()
            if state.window_reset_at_ms <= now_ms
        ]
        for key in stale:
            del self._state_by_key[key]
        self._last_gc_ms = now_ms
        if stale:
            logger.debug(
                "rate_limit.gc",
                extra={"removed": len(stale), "entries": len(self._state_by_key)},
            )
        return len(stale)

    def gc(self) -> int:
        """Remove entries whose window has passed; returns how many."""
        with self._lock:
            return self._gc_locked(self._now_ms())

    def check_and_consume(
        self,
        identity: str,
        action_class: str,
        limit_config: LimitConfig,
    ) -> RateLimitResult:
        """Check the budget and count the request if it is allowed.

        Raises:
            ValueError: If identity or action_class is empty.
        """
        if not identity:
            raise ValueError("identity must be a non-empty string")
        if not action_class:
            raise ValueError("action_class must be a non-empty string")

        # ActionClass members and plain strings share one key space
        key = (identity, getattr(action_class, "value", action_class))
        limit = limit_config.max_requests

        with self._lock:
            now_ms = self._now_ms()
            if now_ms - self._last_gc_ms >= self._gc_interval_ms:
                self._gc_locked(now_ms)

            state = self._state_by_key.get(key)

            if state is None or now_ms >= state.window_reset_at_ms:
                state = _WindowState(
                    count=1,
                    window_reset_at_ms=now_ms + limit_config.window_ms,
                )
                self._state_by_key[key] = state
                return self._build_allowed_result(
                    limit=limit,
                    remaining=limit - 1,
                    reset_in_ms=limit_config.window_ms,
                )

            reset_in_ms = state.window_reset_at_ms - now_ms

            if state.count >= limit:
                return self._build_blocked_result(limit=limit, reset_in_ms=reset_in_ms)

            state.count += 1
            return self._build_allowed_result(
                limit=limit,
                remaining=limit - state.count,
                reset_in_ms=reset_in_ms,
            )

    def reset(self) -> None:
        with self._lock:
            self._state_by_key.clear()
            self._last_gc_ms = self._now_ms()
