"""Cache adapters.

One contract (``AbstractCache``), three implementations: the shared Redis
store, the process-local map, and the administrative no-op.
"""

from app.adapters.cache.base import AbstractCache, CacheLookup, LookupStatus
from app.adapters.cache.factory import create_cache

__all__ = ["AbstractCache", "CacheLookup", "LookupStatus", "create_cache"]
