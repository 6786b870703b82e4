"""Storage backend selection for the cache and rate limit adapters.

The choice between the shared Redis store and the process-local map is made
once, at startup, by ``create_backend``. Callers receive one of two concrete
variants and never re-check configuration afterwards.

Local mode is fully functional but private to one process: several
instances each keep their own entries and counters.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Literal

import redis.asyncio as redis

from app.core.config import CacheSettings

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """JSON payload held by the local map with its absolute expiry (epoch seconds)."""

    value: str
    expires_at: float


@dataclass
class MemoryStore:
    """Process-private key/value map shared by all local namespace caches.

    Keys are stored fully qualified (``"<namespace>:<key>"``) so that one
    namespace can be cleared without touching another.
    """

    clock: Callable[[], float] = time.time
    entries: dict[str, CacheEntry] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.entries)


@dataclass
class LocalBackend:
    """In-process backend. No network calls, no cross-process sharing."""

    store: MemoryStore
    kind: Literal["local"] = "local"

    async def close(self) -> None:
        self.store.entries.clear()


@dataclass
class RemoteBackend:
    """Shared Redis backend used by every instance of the service."""

    client: redis.Redis
    timeout_seconds: float
    kind: Literal["remote"] = "remote"

    async def close(self) -> None:
        await self.client.aclose()
        logger.info("backend.closed", extra={"backend": self.kind})


Backend = LocalBackend | RemoteBackend


def create_redis_client(cache_settings: CacheSettings) -> redis.Redis:
    """Build an async Redis client from the configured URL and token.

    The client connects lazily, so construction never blocks on the network.

    Args:
        cache_settings: Cache settings carrying ``redis_url``/``redis_token``.

    Returns:
        redis.asyncio.Redis: Client with bounded socket timeouts.
    """

    options: dict[str, Any] = {
        "encoding": "utf-8",
        "decode_responses": True,
        "socket_timeout": cache_settings.timeout_seconds,
        "socket_connect_timeout": cache_settings.timeout_seconds,
    }
    if cache_settings.redis_token:
        options["password"] = cache_settings.redis_token

    return redis.from_url(cache_settings.redis_url, **options)


def create_backend(
    cache_settings: CacheSettings,
    *,
    clock: Callable[[], float] = time.time,
) -> Backend:
    """Select the storage backend from configuration.

    Args:
        cache_settings: Resolved cache settings.
        clock: Time source for the local map (UNIX seconds).

    Returns:
        RemoteBackend when a Redis URL is configured, LocalBackend otherwise.
    """

    if cache_settings.redis_url:
        backend: Backend = RemoteBackend(
            client=create_redis_client(cache_settings),
            timeout_seconds=cache_settings.timeout_seconds,
        )
    else:
        backend = LocalBackend(store=MemoryStore(clock=clock))

    logger.info(
        "backend.selected",
        extra={
            "backend": backend.kind,
            "token_configured": bool(cache_settings.redis_token),
        },
    )
    return backend
