"""No-op cache used when caching is switched off administratively."""

from __future__ import annotations

from typing import Any

from app.adapters.cache.base import MISS, AbstractCache, CacheLookup


class DisabledCache(AbstractCache):
    """Cache that never stores anything, whatever backend is configured."""

    def __init__(self, namespace: str, default_ttl_seconds: float) -> None:
        self.namespace = namespace
        self.default_ttl_seconds = default_ttl_seconds

    async def lookup(self, key: str) -> CacheLookup:
        return MISS

    async def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        return None

    async def delete(self, key: str) -> bool:
        return False

    async def clear(self) -> None:
        return None

    async def has(self, key: str) -> bool:
        return False

    async def size(self) -> int:
        return 0

    async def cleanup(self) -> int:
        return 0
