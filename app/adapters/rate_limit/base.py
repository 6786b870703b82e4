"""Rate limiter interfaces.

The HTTP layer depends on this abstraction, not on the storage. Limiters are
policy-agnostic: the ceiling and window travel with each ``consume`` call, so
one limiter instance serves every named policy.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at_ms: UNIX epoch milliseconds when the current window ends.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at_ms: int
    retry_after_seconds: int | None

    @property
    def reset_at(self) -> int:
        """Window end as UNIX epoch seconds (rounded up)."""
        return -(-self.reset_at_ms // 1000)


class AbstractRateLimiter(ABC):
    """Interface for fixed-window rate limiters."""

    @abstractmethod
    async def consume(self, key: str, *, limit: int, window_ms: int) -> RateLimitResult:
        """Count one request against ``key``.

        Args:
            key: Fully namespaced limiter key (policy name + identity).
            limit: Max requests allowed per window.
            window_ms: Window length in milliseconds.

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    def cleanup(self) -> int:
        """Forget windows that have ended; returns how many were dropped."""
        return 0
