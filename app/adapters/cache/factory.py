"""Factory for namespaced cache instances."""

from app.adapters.backend import Backend, LocalBackend, RemoteBackend
from app.adapters.cache.base import AbstractCache
from app.adapters.cache.disabled import DisabledCache
from app.adapters.cache.in_memory import InMemoryCache
from app.adapters.cache.redis_cache import RedisCache
from app.core.errors import ValidationAppError


def create_cache(
    backend: Backend,
    namespace: str,
    default_ttl_seconds: float,
    *,
    disabled: bool = False,
) -> AbstractCache:
    """Build the cache for one namespace on the selected backend.

    ``disabled`` wins over any backend: the returned cache bypasses both the
    shared store and the local map.

    Raises:
        ValidationAppError: If the namespace or TTL is invalid.
    """
    if not namespace or ":" in namespace:
        raise ValidationAppError(
            code="invalid_cache_namespace",
            message=f"Cache namespace must be a non-empty name without ':' (got {namespace!r})",
            details={"field": "namespace"},
        )
    if default_ttl_seconds <= 0:
        raise ValidationAppError(
            code="invalid_cache_ttl",
            message=f"Default TTL for namespace '{namespace}' must be positive",
            details={"field": "default_ttl_seconds", "namespace": namespace},
        )

    if disabled:
        return DisabledCache(namespace, default_ttl_seconds)

    if isinstance(backend, RemoteBackend):
        return RedisCache(
            backend.client,
            namespace,
            default_ttl_seconds,
            timeout_seconds=backend.timeout_seconds,
        )

    if isinstance(backend, LocalBackend):
        return InMemoryCache(backend.store, namespace, default_ttl_seconds)

    raise ValidationAppError(
        code="unknown_backend",
        message=f"Unsupported cache backend: {type(backend).__name__}",
    )
