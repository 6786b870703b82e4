"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running several instances multiplies the effective
  limit, because each instance counts on its own. Use the Redis limiter
  wherever the service is scaled horizontally.
- Windows start at the first request for a key, not on clock boundaries.
- No locking: mutation happens on the event loop thread only.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult


@dataclass
class _WindowState:
    reset_at_ms: int
    count: int


def build_result(*, limit: int, count: int, reset_at_ms: int, now_ms: int) -> RateLimitResult:
    """Turn a window's counter into a RateLimitResult.

    Shared by every limiter so the allowed/remaining/retry-after arithmetic
    is identical whichever store produced ``count``.
    """
    allowed = count <= limit
    retry_after = None
    if not allowed:
        retry_after = max(0, int(math.ceil((reset_at_ms - now_ms) / 1000)))
    return RateLimitResult(
        allowed=allowed,
        limit=limit,
        remaining=max(0, limit - count),
        reset_at_ms=int(reset_at_ms),
        retry_after_seconds=retry_after,
    )


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter using a fixed time window per key.

    The first request for an unseen or expired key opens a window of
    ``window_ms`` with count 1. Later requests in that window increment the
    count, denied ones included, and never move the window's end.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            clock: Time source function returning UNIX time in seconds.
        """
        self._clock = clock
        self._state_by_key: dict[str, _WindowState] = {}

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def consume(self, key: str, *, limit: int, window_ms: int) -> RateLimitResult:
        """Count one request for ``key``.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        now_ms = self._now_ms()
        state = self._state_by_key.get(key)
        if state is None or state.reset_at_ms <= now_ms:
            state = _WindowState(reset_at_ms=now_ms + window_ms, count=0)
            self._state_by_key[key] = state

        state.count += 1
        return build_result(
            limit=limit,
            count=state.count,
            reset_at_ms=state.reset_at_ms,
            now_ms=now_ms,
        )

    def cleanup(self) -> int:
        """Drop windows that have already ended; returns how many."""
        now_ms = self._now_ms()
        expired = [k for k, s in self._state_by_key.items() if s.reset_at_ms <= now_ms]
        for key in expired:
            del self._state_by_key[key]
        return len(expired)
