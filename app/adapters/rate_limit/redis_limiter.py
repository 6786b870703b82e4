"""Redis fixed-window rate limiter.

Counters live in the shared store, so every instance of the service enforces
the same ceiling. Each check is one MULTI/EXEC transaction:

    INCR key            atomic increment, no read-modify-write race
    PEXPIRE key w NX    start the window on the first hit only
    PTTL key            time left in the window

``NX`` means later requests (denied ones included) never extend the window.
Requires Redis >= 7.0 for ``PEXPIRE ... NX``.

When the store fails or times out, the decision for that single call comes
from an in-memory fallback limiter, so a store outage never blocks the
protected endpoint.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import time
from typing import Callable

import redis.asyncio as redis
from redis.exceptions import RedisError

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter, build_result

logger = logging.getLogger(__name__)

_STORE_ERRORS = (RedisError, asyncio.TimeoutError, OSError)


def _hash_key(key: str) -> str:
    return hashlib.sha256(key.encode()).hexdigest()[:16]


class RedisFixedWindowRateLimiter(AbstractRateLimiter):
    """Shared-store limiter with a per-call local fallback."""

    def __init__(
        self,
        client: redis.Redis,
        *,
        fallback: InMemoryFixedWindowRateLimiter | None = None,
        timeout_seconds: float = 2.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._clock = clock
        self._fallback = fallback or InMemoryFixedWindowRateLimiter(clock=clock)
        self._timeout = timeout_seconds

    async def _increment(self, key: str, window_ms: int) -> tuple[int, int]:
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.pexpire(key, window_ms, nx=True)
            pipe.pttl(key)
            count, _, ttl_ms = await pipe.execute()
        return int(count), int(ttl_ms)

    async def consume(self, key: str, *, limit: int, window_ms: int) -> RateLimitResult:
        if not key:
            raise ValueError("key must be a non-empty string")

        try:
            count, ttl_ms = await asyncio.wait_for(
                self._increment(key, window_ms),
                timeout=self._timeout,
            )
        except _STORE_ERRORS as exc:
            logger.warning(
                "rate_limit.backend_error",
                extra={
                    "key_hash": _hash_key(key),
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                    "fallback": "in_memory",
                },
            )
            return await self._fallback.consume(key, limit=limit, window_ms=window_ms)

        now_ms = int(self._clock() * 1000)
        reset_at_ms = now_ms + (ttl_ms if ttl_ms > 0 else window_ms)
        return build_result(limit=limit, count=count, reset_at_ms=reset_at_ms, now_ms=now_ms)

    def cleanup(self) -> int:
        # Redis expires windows natively; only the fallback map needs sweeping
        return self._fallback.cleanup()
