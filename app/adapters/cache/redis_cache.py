"""Redis-backed namespaced cache.

Every store interaction is a single command bounded by ``timeout_seconds``.
Failures (connection errors, timeouts, malformed payloads) are logged and
turned into the neutral outcome for the operation: a miss, ``False``, ``0``
or a no-op. Nothing Redis-specific escapes this module.

Expiry is native (``SET ... PX``), so ``cleanup`` has nothing to do.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, TypeVar

import redis.asyncio as redis
from redis.exceptions import RedisError

from app.adapters.cache.base import (
    BACKEND_ERROR,
    MISS,
    AbstractCache,
    CacheLookup,
    LookupStatus,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

SCAN_PAGE_SIZE = 100
DELETE_BATCH_SIZE = 500

_STORE_ERRORS = (RedisError, asyncio.TimeoutError, OSError)


class _StoreFailure(Exception):
    """Internal marker: the store call failed and was already logged."""


class RedisCache(AbstractCache):
    """Namespaced cache stored as JSON strings in Redis."""

    def __init__(
        self,
        client: redis.Redis,
        namespace: str,
        default_ttl_seconds: float,
        *,
        timeout_seconds: float = 2.0,
    ) -> None:
        self._client = client
        self.namespace = namespace
        self.default_ttl_seconds = default_ttl_seconds
        self._timeout = timeout_seconds

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"RedisCache(namespace={self.namespace!r}, "
            f"default_ttl_seconds={self.default_ttl_seconds}, timeout_s={self._timeout})"
        )

    async def _call(self, operation: str, factory: Callable[[], Awaitable[T]]) -> T:
        """Run one store command with a timeout.

        Raises:
            _StoreFailure: The command failed or timed out (already logged).
        """
        try:
            return await asyncio.wait_for(factory(), timeout=self._timeout)
        except _STORE_ERRORS as exc:
            logger.warning(
                "cache.backend_error",
                extra={
                    "namespace": self.namespace,
                    "operation": operation,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            raise _StoreFailure(operation) from exc

    async def _scan_namespace(self) -> set[str]:
        """Collect every key of this namespace, following the cursor to 0."""
        pattern = f"{self.namespace}:*"
        keys: set[str] = set()
        cursor = 0
        while True:
            cursor, page = await self._call(
                "scan",
                lambda c=cursor: self._client.scan(cursor=c, match=pattern, count=SCAN_PAGE_SIZE),
            )
            keys.update(page or [])
            if int(cursor) == 0:
                return keys

    async def lookup(self, key: str) -> CacheLookup:
        try:
            raw = await self._call("get", lambda: self._client.get(self.qualify(key)))
        except _StoreFailure:
            return BACKEND_ERROR

        if raw is None:
            logger.debug("cache.miss", extra={"namespace": self.namespace, "cache_key": key[:64]})
            return MISS

        try:
            value = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(
                "cache.payload_invalid",
                extra={"namespace": self.namespace, "cache_key": key[:64]},
            )
            return MISS

        logger.debug("cache.hit", extra={"namespace": self.namespace, "cache_key": key[:64]})
        return CacheLookup(LookupStatus.HIT, value)

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

        ttl_ms = max(1, int(ttl * 1000))
        try:
            await self._call("set", lambda: self._client.set(self.qualify(key), payload, px=ttl_ms))
        except _StoreFailure:
            return
        logger.debug(
            "cache.set",
            extra={"namespace": self.namespace, "cache_key": key[:64], "ttl_s": ttl},
        )

    async def delete(self, key: str) -> bool:
        try:
            removed = await self._call("delete", lambda: self._client.delete(self.qualify(key)))
        except _StoreFailure:
            return False
        return int(removed) > 0

    async def clear(self) -> None:
        try:
            keys = sorted(await self._scan_namespace())
            for start in range(0, len(keys), DELETE_BATCH_SIZE):
                batch = keys[start:start + DELETE_BATCH_SIZE]
                await self._call("delete", lambda b=batch: self._client.delete(*b))
        except _StoreFailure:
            return
        logger.info("cache.cleared", extra={"namespace": self.namespace, "removed": len(keys)})

    async def has(self, key: str) -> bool:
        # Decodes the payload so a malformed value is absent here as in get
        return (await self.lookup(key)).found

    async def size(self) -> int:
        try:
            return len(await self._scan_namespace())
        except _StoreFailure:
            return 0

    async def cleanup(self) -> int:
        return 0
