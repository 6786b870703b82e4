"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) and
owns the lifecycle of the storage backend: it is selected once on startup,
shared by the cache registry and the rate limiters via ``app.state``, and
released on shutdown.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Callable

from fastapi import FastAPI

from app.adapters.backend import create_backend
from app.adapters.rate_limit.factory import create_rate_limiter
from app.api.routes import health_router
from app.core.config import Settings, settings as default_settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.rate_limit import build_rate_limiters
from app.services.cache_registry import CacheRegistry

logger = logging.getLogger(__name__)


def build_lifespan(
    app_settings: Settings,
    *,
    clock: Callable[[], float] = time.time,
) -> Callable[[FastAPI], AsyncContextManager[None]]:
    """Create the lifespan handler bound to ``app_settings``.

    Args:
        app_settings: Settings used to select the backend and to switch
            rate limiting and its headers.
        clock: Time source for local-map expiry and rate windows.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        cache_settings = app_settings.cache
        backend = create_backend(cache_settings, clock=clock)

        registry = CacheRegistry(
            backend,
            disabled=cache_settings.disabled,
            cleanup_interval_seconds=cache_settings.cleanup_interval_seconds,
        )
        limiter = create_rate_limiter(backend, clock=clock)
        registry.add_sweeper(limiter.cleanup)

        app.state.cache_registry = registry
        app.state.rate_limit_settings = app_settings.rate_limit
        app.state.rate_limiters = build_rate_limiters(limiter)

        registry.start()
        logger.info("app.started", extra=registry.describe())
        try:
            yield
        finally:
            await registry.stop()
            logger.info("app.stopped")

    return lifespan


def create_app(
    app_settings: Settings | None = None,
    *,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Optional settings override (tests); defaults to the
            environment-loaded settings.
        clock: Time source for cache expiry and rate windows (tests).

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    app = FastAPI(
        title=cfg.app.title,
        description=(
            "Club events and coordination API. Responses are cached per "
            "namespace (shared Redis store or in-process map) and sensitive "
            "routes are protected by named rate limit policies."
        ),
        version="0.1.0",
        debug=cfg.app.debug,
        lifespan=build_lifespan(cfg, clock=clock),
    )

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(health_router)

    return app
