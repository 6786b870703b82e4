"""Cache invalidation after writes.

Each helper maps a domain change to the cache entries that may now be stale.
When unsure whether a list view contains the changed record, the whole list
namespace is dropped.

Helpers never raise: a failed invalidation is logged and the write that
triggered it carries on.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from app.services import cache_keys
from app.services.cache_registry import CacheRegistry

logger = logging.getLogger(__name__)


async def _run(scope: str, step: Callable[[], Awaitable[None]], **context: str | None) -> bool:
    try:
        await step()
    except Exception as exc:
        logger.error(
            "cache.invalidation_failed",
            extra={
                "scope": scope,
                "error_type": type(exc).__name__,
                "error_msg": str(exc),
                **{k: v for k, v in context.items() if v is not None},
            },
        )
        return False
    logger.info(
        "cache.invalidated",
        extra={"scope": scope, **{k: v for k, v in context.items() if v is not None}},
    )
    return True


async def invalidate_event_cache(registry: CacheRegistry, event_id: str | None = None) -> bool:
    """Drop cached data for one event, or for all events when no id is given.

    Any list view might include the event, so every list view is cleared.

    Returns:
        True if invalidation completed, False if it failed (already logged).
    """

    async def step() -> None:
        if event_id:
            await registry.event.delete(cache_keys.event(event_id))
            await registry.image.delete(cache_keys.galleries(event_id))
        else:
            await registry.event.clear()
        await registry.event_list.clear()

    return await _run("event", step, event_id=event_id)


async def invalidate_user_cache(
    registry: CacheRegistry,
    user_id: str | None = None,
    email: str | None = None,
) -> bool:
    """Drop the cached user by id and/or by email."""

    async def step() -> None:
        if user_id:
            await registry.user.delete(cache_keys.user(user_id))
        if email:
            await registry.user.delete(cache_keys.user_by_email(email))

    return await _run("user", step, user_id=user_id)


async def invalidate_gallery_cache(
    registry: CacheRegistry,
    gallery_id: str | None = None,
    event_id: str | None = None,
) -> bool:
    """Drop a gallery and/or the gallery listing of an event."""

    async def step() -> None:
        if gallery_id:
            await registry.image.delete(cache_keys.gallery(gallery_id))
        if event_id:
            await registry.image.delete(cache_keys.galleries(event_id))

    return await _run("gallery", step, gallery_id=gallery_id, event_id=event_id)


async def invalidate_coordination_cache(
    registry: CacheRegistry,
    coordination_id: str,
    *,
    share_token: str | None = None,
    event_id: str | None = None,
) -> bool:
    """Drop a coordination record, its public share view and its event entry.

    Coordination records are cached in the ``event`` namespace, next to the
    event they belong to.
    """

    async def step() -> None:
        await registry.event.delete(cache_keys.coordination(coordination_id))
        if share_token:
            await registry.event.delete(cache_keys.coordination_share(share_token))
        if event_id:
            await registry.event.delete(cache_keys.event(event_id))

    return await _run(
        "coordination",
        step,
        coordination_id=coordination_id,
        event_id=event_id,
    )
