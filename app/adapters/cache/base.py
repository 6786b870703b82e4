"""Cache interfaces.

Services depend on ``AbstractCache`` only. Every implementation is bound to
one namespace and honours the same contract, whichever store sits behind it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any


class LookupStatus(str, Enum):
    """Outcome of a cache lookup."""

    HIT = "hit"
    MISS = "miss"
    ERROR = "error"


@dataclass(frozen=True)
class CacheLookup:
    """Result of ``AbstractCache.lookup``.

    Attributes:
        status: HIT when a live value was found, MISS when absent or expired,
            ERROR when the backing store failed and the failure was absorbed.
        value: The cached value on HIT, otherwise None.
    """

    status: LookupStatus
    value: Any = None

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.HIT


MISS = CacheLookup(LookupStatus.MISS)
BACKEND_ERROR = CacheLookup(LookupStatus.ERROR)


class AbstractCache(ABC):
    """Namespaced key/value cache with per-entry expiry."""

    namespace: str
    default_ttl_seconds: float

    def qualify(self, key: str) -> str:
        """Return the store key for ``key`` within this namespace."""
        return f"{self.namespace}:{key}"

    @abstractmethod
    async def lookup(self, key: str) -> CacheLookup:
        """Look up a key, reporting hit, miss or absorbed backend error."""
        raise NotImplementedError

    async def get(self, key: str) -> Any | None:
        """Return the live value for ``key`` or None."""
        return (await self.lookup(key)).value

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """Store a value; ``ttl_seconds`` defaults to the namespace TTL."""
        raise NotImplementedError

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove a key and report whether it existed."""
        raise NotImplementedError

    @abstractmethod
    async def clear(self) -> None:
        """Remove every key of this namespace (and only this namespace)."""
        raise NotImplementedError

    @abstractmethod
    async def has(self, key: str) -> bool:
        """True iff ``get`` would currently return a value."""
        raise NotImplementedError

    @abstractmethod
    async def size(self) -> int:
        """Number of live entries in this namespace."""
        raise NotImplementedError

    @abstractmethod
    async def cleanup(self) -> int:
        """Evict expired entries and return how many were removed."""
        raise NotImplementedError

    def _ttl(self, ttl_seconds: float | None) -> float:
        # 0 or None both mean "namespace default"
        return ttl_seconds or self.default_ttl_seconds
