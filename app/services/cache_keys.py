"""Cache key builders.

Every producer and consumer of a cached value builds its key here, so both
sides always agree. All functions are pure.
"""

from __future__ import annotations

from typing import Any, Mapping


def filters_descriptor(filters: Mapping[str, Any] | None) -> str | None:
    """Canonical string for a list-view filter mapping.

    Items are sorted and empty values dropped, so equal filters always give
    the same descriptor regardless of argument order.

    Examples:
        >>> filters_descriptor({"status": "published", "year": 2024})
        'status=published&year=2024'
        >>> filters_descriptor({"year": 2024, "status": "published"})
        'status=published&year=2024'
        >>> filters_descriptor({}) is None
        True
    """
    if not filters:
        return None
    parts = [f"{k}={v}" for k, v in sorted(filters.items()) if v is not None and v != ""]
    return "&".join(parts) or None


def event(event_id: str) -> str:
    return f"event:{event_id}"


def events(filters: str | None = None) -> str:
    """List view of events; ``filters`` is a descriptor from ``filters_descriptor``."""
    return f"events:{filters or 'all'}"


def user(user_id: str) -> str:
    return f"user:{user_id}"


def user_by_email(email: str) -> str:
    return f"user:email:{email.strip().lower()}"


def gallery(gallery_id: str) -> str:
    return f"gallery:{gallery_id}"


def galleries(event_id: str) -> str:
    return f"galleries:{event_id}"


def image(key: str) -> str:
    return f"image:{key}"


def coordination(coordination_id: str) -> str:
    return f"coordination:{coordination_id}"


def coordination_share(token: str) -> str:
    return f"coordination:share:{token}"


def instagram_posts(account_id: str) -> str:
    return f"instagram:{account_id}"
