"""Per-namespace caches owned by the application.

The registry is constructed explicitly (by the app lifespan) and passed to
whatever needs a cache; there is no module-level cache state. It also owns
the periodic sweep that bounds local-map memory: an asyncio task started by
``start()`` and cancelled by ``stop()``.
"""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
from typing import Any, Awaitable, Callable, Mapping, TypeVar

from app.adapters.backend import Backend
from app.adapters.cache import AbstractCache, create_cache
from app.core.errors import CacheAppError

logger = logging.getLogger(__name__)

R = TypeVar("R")

# Default TTL per namespace, in seconds
NAMESPACE_TTLS: dict[str, float] = {
    "event": 600,
    "event_list": 600,
    "user": 300,
    "image": 1800,
    "api": 60,
}


class CacheRegistry:
    """Holds one cache per namespace on a single, already-selected backend.

    Attributes:
        backend: The backend every namespace cache writes to.
        disabled: Whether caching is switched off administratively.
    """

    def __init__(
        self,
        backend: Backend,
        *,
        disabled: bool = False,
        cleanup_interval_seconds: float = 300.0,
        namespaces: Mapping[str, float] = NAMESPACE_TTLS,
    ) -> None:
        self.backend = backend
        self.disabled = disabled
        self._interval = cleanup_interval_seconds
        self._caches: dict[str, AbstractCache] = {
            name: create_cache(backend, name, ttl, disabled=disabled)
            for name, ttl in namespaces.items()
        }
        self._sweepers: list[Callable[[], int]] = []
        self._sweep_task: asyncio.Task[None] | None = None

    def get(self, namespace: str) -> AbstractCache:
        """Return the cache for ``namespace``.

        Raises:
            CacheAppError: If the namespace is not registered.
        """
        try:
            return self._caches[namespace]
        except KeyError:
            raise CacheAppError(
                code="unknown_cache_namespace",
                message=f"No cache registered for namespace '{namespace}'",
                details={"namespace": namespace},
            ) from None

    @property
    def event(self) -> AbstractCache:
        return self.get("event")

    @property
    def event_list(self) -> AbstractCache:
        return self.get("event_list")

    @property
    def user(self) -> AbstractCache:
        return self.get("user")

    @property
    def image(self) -> AbstractCache:
        return self.get("image")

    @property
    def api(self) -> AbstractCache:
        return self.get("api")

    def namespaces(self) -> list[str]:
        return list(self._caches)

    def add_sweeper(self, sweeper: Callable[[], int]) -> None:
        """Register an extra callable run on every sweep (e.g. limiter cleanup)."""
        self._sweepers.append(sweeper)

    async def sweep(self) -> int:
        """Evict expired entries from every namespace and registered sweeper."""
        removed = 0
        for cache in self._caches.values():
            removed += await cache.cleanup()
        for sweeper in self._sweepers:
            removed += sweeper()
        logger.debug("cache.sweep", extra={"removed": removed, "backend": self.backend.kind})
        return removed

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.sweep()
            except Exception as exc:
                # A failed sweep only delays eviction; keep the loop alive
                logger.error(
                    "cache.sweep_failed",
                    extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
                )

    @property
    def sweeping(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    def start(self) -> None:
        """Start the periodic sweep. Must be called from a running event loop."""
        if self.sweeping:
            return
        self._sweep_task = asyncio.create_task(self._sweep_forever(), name="cache-sweep")
        logger.info(
            "cache.sweep_started",
            extra={"interval_s": self._interval, "backend": self.backend.kind},
        )

    async def stop(self) -> None:
        """Cancel the sweep and release the backend."""
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweep_task
            self._sweep_task = None
        await self.backend.close()

    def describe(self) -> dict[str, Any]:
        """Summary of the cache configuration for health/diagnostics."""
        return {
            "backend": self.backend.kind,
            "disabled": self.disabled,
            "namespaces": {
                name: cache.default_ttl_seconds for name, cache in self._caches.items()
            },
        }


def cached(
    cache: AbstractCache,
    key_builder: Callable[..., str],
    ttl_seconds: float | None = None,
) -> Callable[[Callable[..., Awaitable[R]]], Callable[..., Awaitable[R]]]:
    """Read-through caching for an async function.

    The key is built from the call arguments. On a miss (or an absorbed
    backend error) the function runs and its result is stored; ``None``
    results are not cached.

    Example:
        >>> load = cached(registry.event, cache_keys.event)(repository.get_event)
        >>> event = await load("evt-1")
    """

    def decorator(fn: Callable[..., Awaitable[R]]) -> Callable[..., Awaitable[R]]:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> R:
            key = key_builder(*args, **kwargs)
            lookup = await cache.lookup(key)
            if lookup.found:
                return lookup.value

            result = await fn(*args, **kwargs)
            if result is not None:
                await cache.set(key, result, ttl_seconds)
            return result

        return wrapper

    return decorator


async def cache_api_response(
    cache: AbstractCache,
    key: str,
    producer: Callable[[], Awaitable[R]],
    ttl_seconds: float | None = None,
) -> R:
    """Return the cached response for ``key`` or produce and store it."""
    return await cached(cache, lambda: key, ttl_seconds)(producer)()
