"""Rate limiting dependency for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency function only.
- Swap-friendly: the limiter lives on the service context behind an
  abstract interface.
- Per action class: paste creation is throttled harder than reads because
  it consumes storage.

Client identity comes from trusted proxy headers, falling back to a loopback
sentinel. The limiter itself never sees the request.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Awaitable, Callable

from fastapi import Request

from app.adapters.rate_limit.base import ActionClass
from app.core.context import get_context
from app.core.errors import RateLimitAppError

logger = logging.getLogger(__name__)

# Checked in order; the first non-empty value wins
TRUSTED_PROXY_HEADERS = ("cf-connecting-ip", "x-real-ip", "x-forwarded-for")
LOOPBACK_IDENTITY = "127.0.0.1"


def resolve_client_identity(request: Request) -> str:
    """Resolve the client key for rate limiting.

    Args:
        request: FastAPI request.

    Returns:
        str: Client address from proxy headers, or the loopback sentinel.
    """

    for header in TRUSTED_PROXY_HEADERS:
        value = request.headers.get(header)
        if not value:
            continue
        # X-Forwarded-For is "client, proxy1, proxy2"
        candidate = value.split(",")[0].strip()
        if candidate:
            return candidate

    return LOOPBACK_IDENTITY


def _hash_identity(identity: str) -> str:
    """Hash the client identity for logging without exposing addresses."""
    return hashlib.sha256(identity.encode()).hexdigest()[:16]


def rate_limited(action_class: ActionClass) -> Callable[[Request], Awaitable[None]]:
    """Build a dependency enforcing the budget of ``action_class``.

    Usage:
        @router.post("/paste", dependencies=[Depends(rate_limited(ActionClass.CREATE))])
    """

    async def enforce_rate_limit(request: Request) -> None:
        """Consume one unit from the requester's budget.

        Raises:
            RateLimitAppError: When the requester exceeded the budget (HTTP 429).
        """
        context = get_context(request)
        if not context.settings.app.rate_limit_enabled:
            return

        identity = resolve_client_identity(request)
        limit_config = context.limit_for(action_class)
        result = context.rate_limiter.check_and_consume(
            identity,
            action_class.value,
            limit_config,
        )

        if result.allowed:
            logger.debug(
                "rate_limit.allowed",
                extra={
                    "action_class": action_class.value,
                    "client_hash": _hash_identity(identity),
                    "limit": result.limit,
                    "remaining": result.remaining,
                },
            )
            return

        retry_after = result.retry_after_seconds or 1
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "action_class": action_class.value,
                "client_hash": _hash_identity(identity),
                "limit": result.limit,
                "window_ms": limit_config.window_ms,
                "retry_after_s": retry_after,
            },
        )
        raise RateLimitAppError(
            code="rate_limit_exceeded",
            message="Rate limit exceeded. Try again later.",
            details={
                "retry_after": retry_after,
                "limit": result.limit,
                "remaining": result.remaining,
                "reset_in_ms": result.reset_in_ms,
                "action_class": action_class.value,
            },
        )

    return enforce_rate_limit
