"""Factory selecting the rate limiter for the configured backend."""

import time
from typing import Callable

from app.adapters.backend import Backend, RemoteBackend
from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from app.adapters.rate_limit.redis_limiter import RedisFixedWindowRateLimiter


def create_rate_limiter(
    backend: Backend,
    *,
    clock: Callable[[], float] = time.time,
) -> AbstractRateLimiter:
    """Return the shared-store limiter when Redis is configured.

    In local mode counters are per process and under-count across instances.
    """
    if isinstance(backend, RemoteBackend):
        return RedisFixedWindowRateLimiter(
            backend.client,
            fallback=InMemoryFixedWindowRateLimiter(clock=clock),
            timeout_seconds=backend.timeout_seconds,
            clock=clock,
        )
    return InMemoryFixedWindowRateLimiter(clock=clock)
