from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Health check endpoint.

    Returns a status response plus the cache mode (backend kind and whether
    caching is disabled). Used by load balancers and monitoring systems.

    Returns:
        dict: ``{"status": "ok", "cache": {...}}``.
    """

    registry = getattr(request.app.state, "cache_registry", None)
    cache = registry.describe() if registry is not None else None
    return {"status": "ok", "cache": cache}
