"""In-process TTL cache backed by the shared ``MemoryStore``.

Notes:
- Values are held as JSON text, like the Redis cache, so callers never share
  a mutable object with the map and unserializable values are skipped.
- Per-process only: entries are not visible to other instances.
- Expired entries are evicted lazily on read and by the periodic sweep
  (``cleanup``) scheduled by the cache registry.
- No locking: all mutation happens on the event loop thread.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from app.adapters.backend import CacheEntry, MemoryStore
from app.adapters.cache.base import MISS, AbstractCache, CacheLookup, LookupStatus

logger = logging.getLogger(__name__)


class InMemoryCache(AbstractCache):
    """Namespaced view over a process-local map."""

    def __init__(self, store: MemoryStore, namespace: str, default_ttl_seconds: float) -> None:
        self._store = store
        self.namespace = namespace
        self.default_ttl_seconds = default_ttl_seconds

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryCache(namespace={self.namespace!r}, "
            f"default_ttl_seconds={self.default_ttl_seconds})"
        )

    def _is_expired(self, entry: CacheEntry) -> bool:
        return self._store.clock() >= entry.expires_at

    def _live_entry(self, qualified: str) -> CacheEntry | None:
        entry = self._store.entries.get(qualified)
        if entry is None:
            return None
        if self._is_expired(entry):
            self._store.entries.pop(qualified, None)
            return None
        return entry

    def _own_keys(self) -> list[str]:
        prefix = f"{self.namespace}:"
        return [k for k in self._store.entries if k.startswith(prefix)]

    async def lookup(self, key: str) -> CacheLookup:
        entry = self._live_entry(self.qualify(key))
        if entry is None:
            logger.debug(
                "cache.miss",
                extra={"namespace": self.namespace, "cache_key": key[:64]},
            )
            return MISS

        logger.debug(
            "cache.hit",
            extra={"namespace": self.namespace, "cache_key": key[:64]},
        )
        return CacheLookup(LookupStatus.HIT, json.loads(entry.value))

    async def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        ttl = self._ttl(ttl_seconds)
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as exc:
            logger.warning(
                "cache.payload_unserializable",
                extra={
                    "namespace": self.namespace,
                    "cache_key": key[:64],
                    "value_type": type(value).__name__,
                    "error_msg": str(exc),
                },
            )
            return

        self._store.entries[self.qualify(key)] = CacheEntry(
            value=payload,
            expires_at=self._store.clock() + ttl,
        )
        logger.debug(
            "cache.set",
            extra={"namespace": self.namespace, "cache_key": key[:64], "ttl_s": ttl},
        )

    async def delete(self, key: str) -> bool:
        qualified = self.qualify(key)
        existed = self._live_entry(qualified) is not None
        self._store.entries.pop(qualified, None)
        return existed

    async def clear(self) -> None:
        keys = self._own_keys()
        for qualified in keys:
            del self._store.entries[qualified]
        logger.info(
            "cache.cleared",
            extra={"namespace": self.namespace, "removed": len(keys)},
        )

    async def has(self, key: str) -> bool:
        return self._live_entry(self.qualify(key)) is not None

    async def size(self) -> int:
        return sum(1 for k in self._own_keys() if self._live_entry(k) is not None)

    async def cleanup(self) -> int:
        now = self._store.clock()
        expired = [
            k for k in self._own_keys() if now >= self._store.entries[k].expires_at
        ]
        for qualified in expired:
            del self._store.entries[qualified]
        return len(expired)
