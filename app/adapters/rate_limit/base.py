"""Rate limiter interfaces.

The API should depend on this abstraction (not the concrete implementation)
so we can swap storage backends later with minimal changes. Limiters are
identity-agnostic: they operate on whatever client key they are given.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class ActionClass(str, Enum):
    """Request categories with independent budgets."""

    CREATE = "create"
    READ = "read"
    DEFAULT = "default"


@dataclass(frozen=True)
class LimitConfig:
    """Budget for one action class.

    Attributes:
        max_requests: Requests allowed per window.
        window_ms: Window length in milliseconds.
    """

    max_requests: int
    window_ms: int

    def __post_init__(self) -> None:
        if self.max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if self.window_ms < 1:
            raise ValueError("window_ms must be >= 1")


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check/consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_in_ms: Milliseconds until the current window resets.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_in_ms: int
    retry_after_seconds: int | None


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    def check_and_consume(
        self,
        identity: str,
        action_class: str,
        limit_config: LimitConfig,
    ) -> RateLimitResult:
        """Consume one request from the budget of ``(identity, action_class)``.

        Args:
            identity: Client key (e.g. resolved IP address).
            action_class: Budget category, see ``ActionClass``.
            limit_config: Budget applied to this action class.

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def reset(self) -> None:
        """Drop all state."""
        raise NotImplementedError
