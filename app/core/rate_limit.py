"""Rate limiting policies and FastAPI dependencies.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Named policies: each is a (window, ceiling, key function) triple and keeps
  its own counters, even for the same client.
- Swap-friendly: the limiter behind a policy is whatever the backend factory
  selected (shared Redis store or per-process map).
- Fail open: a store outage degrades to per-process counting, never to an
  error for the caller.

Identity:
- Default key is the first address of X-Forwarded-For, else the socket peer,
  else the literal "unknown". "unknown" is not an error; all unattributable
  callers share that one bucket.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import Callable

from fastapi import HTTPException, Request, status

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from app.core.config import RateLimitSettings
from app.core.errors import AppError, ValidationAppError

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"
KEY_PREFIX = "rate_limit"

KeyFunc = Callable[[Request], str]


def client_address(request: Request) -> str:
    """Best-effort client address for the request.

    Args:
        request: Incoming request.

    Returns:
        First X-Forwarded-For entry, the peer host, or "unknown".
    """

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    if request.client and request.client.host:
        return request.client.host

    return UNKNOWN_CLIENT


def _hash_identity(identity: str) -> str:
    """Hash the limiter identity for logging without exposing addresses."""
    return hashlib.sha256(identity.encode()).hexdigest()[:16]


@dataclass(frozen=True)
class RateLimitPolicy:
    """A named rate limit policy.

    Attributes:
        name: Policy name; also partitions the limiter keys.
        window_ms: Window length in milliseconds.
        max_requests: Requests allowed per window.
        key_func: Derives the client identity; defaults to ``client_address``.

    Raises:
        ValidationAppError: If the window or ceiling is not positive.
    """

    name: str
    window_ms: int
    max_requests: int
    key_func: KeyFunc | None = None

    def __post_init__(self) -> None:
        if not self.name or ":" in self.name:
            raise ValidationAppError(
                code="invalid_rate_limit_policy",
                message=f"Policy name must be non-empty and contain no ':' (got {self.name!r})",
                details={"field": "name"},
            )
        if self.window_ms < 1:
            raise ValidationAppError(
                code="invalid_rate_limit_policy",
                message=f"Policy '{self.name}': window_ms must be >= 1",
                details={"field": "window_ms", "min_value": 1, "actual_value": self.window_ms},
            )
        if self.max_requests < 1:
            raise ValidationAppError(
                code="invalid_rate_limit_policy",
                message=f"Policy '{self.name}': max_requests must be >= 1",
                details={"field": "max_requests", "min_value": 1, "actual_value": self.max_requests},
            )

    def identity(self, request: Request) -> str:
        key_func = self.key_func or client_address
        return key_func(request) or UNKNOWN_CLIENT


AUTH_POLICY = RateLimitPolicy(name="auth", window_ms=5 * 60 * 1000, max_requests=50)
API_POLICY = RateLimitPolicy(name="api", window_ms=15 * 60 * 1000, max_requests=100)
UPLOAD_POLICY = RateLimitPolicy(name="upload", window_ms=15 * 60 * 1000, max_requests=50)
CONTACT_POLICY = RateLimitPolicy(name="contact", window_ms=60 * 60 * 1000, max_requests=3)

DEFAULT_POLICIES: tuple[RateLimitPolicy, ...] = (
    AUTH_POLICY,
    API_POLICY,
    UPLOAD_POLICY,
    CONTACT_POLICY,
)


class RateLimiter:
    """Applies one policy on top of a storage-level limiter."""

    def __init__(self, policy: RateLimitPolicy, limiter: AbstractRateLimiter) -> None:
        self.policy = policy
        self._limiter = limiter

    def key_for(self, identity: str) -> str:
        return f"{KEY_PREFIX}:{self.policy.name}:{identity}"

    async def check(self, request: Request) -> RateLimitResult:
        """Count the request against this policy and return the decision."""
        identity = self.policy.identity(request)
        result = await self._limiter.consume(
            self.key_for(identity),
            limit=self.policy.max_requests,
            window_ms=self.policy.window_ms,
        )

        log_extra = {
            "policy": self.policy.name,
            "key_hash": _hash_identity(identity),
            "limit": result.limit,
            "remaining": result.remaining,
            "window_ms": self.policy.window_ms,
        }
        if result.allowed:
            logger.debug("rate_limit.allowed", extra=log_extra)
        else:
            logger.warning(
                "rate_limit.exceeded",
                extra={**log_extra, "retry_after_s": result.retry_after_seconds or 0},
            )
        return result


def build_rate_limiters(
    limiter: AbstractRateLimiter,
    policies: tuple[RateLimitPolicy, ...] = DEFAULT_POLICIES,
) -> dict[str, RateLimiter]:
    """Bind every policy to the shared storage-level limiter."""
    return {policy.name: RateLimiter(policy, limiter) for policy in policies}


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Standard throttling headers for a limiter result."""
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_at),
    }
    if not result.allowed:
        headers["Retry-After"] = str(result.retry_after_seconds or 0)
    return headers


def rate_limit(policy_name: str) -> Callable[[Request], object]:
    """Build a FastAPI dependency enforcing the named policy.

    Usage:
        @router.post("/contact", dependencies=[Depends(rate_limit("contact"))])

    Raises (from the dependency):
        HTTPException: 429 Too Many Requests when the ceiling is exceeded.
        AppError: 500 when no policy with that name is registered.
    """

    async def enforce(request: Request) -> RateLimitResult | None:
        rate_limit_settings: RateLimitSettings = request.app.state.rate_limit_settings
        if not rate_limit_settings.enabled:
            return None

        limiters: dict[str, RateLimiter] = request.app.state.rate_limiters
        try:
            limiter = limiters[policy_name]
        except KeyError:
            raise AppError(
                code="unknown_rate_limit_policy",
                message=f"No rate limit policy named '{policy_name}'",
            ) from None

        result = await limiter.check(request)
        if result.allowed:
            return result

        headers = rate_limit_headers(result) if rate_limit_settings.include_headers else None
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded. Try again later.",
            headers=headers,
        )

    enforce.__name__ = f"enforce_{policy_name}_rate_limit"
    return enforce
