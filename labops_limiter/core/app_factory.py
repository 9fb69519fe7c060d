"""Application factory for the FastAPI app.

Builds the limiters, the cleanup task and the app in one place so tests can
create isolated instances with their own settings and clock.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from fastapi import FastAPI

from labops_limiter.adapters.rate_limit.cleanup import PeriodicCleanup
from labops_limiter.adapters.rate_limit.in_memory import (
    InMemoryFixedWindowRateLimiter,
    epoch_ms,
)
from labops_limiter.api.routes import health_router, rate_limit_router
from labops_limiter.core.config import Settings, settings as default_settings
from labops_limiter.core.exception_handlers import setup_exception_handlers
from labops_limiter.core.logging import configure_logging
from labops_limiter.core.middleware import request_id_middleware
from labops_limiter.services.route_limits import RouteRateLimitService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the expired-entry sweep for as long as the app is serving."""
    cleanup: PeriodicCleanup = app.state.cleanup
    if app.state.settings.limiter.cleanup_enabled:
        cleanup.start()
    try:
        yield
    finally:
        await cleanup.stop()


def create_app(
    app_settings: Settings | None = None,
    *,
    clock: Callable[[], int] = epoch_ms,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to use; defaults to the environment-loaded ones.
        clock: Time source (epoch ms) shared by every limiter.

    Returns:
        Configured app with limiters on ``app.state``.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    app = FastAPI(
        title="LabOps Limiter",
        description=(
            "Fixed-window rate limiting for the laboratory operations dashboard: "
            "per-route quotas keyed by client id, with X-RateLimit-* headers."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = cfg
    app.state.limiter = InMemoryFixedWindowRateLimiter(
        default_limit=cfg.limiter.default_limit,
        window_ms=cfg.limiter.window_ms,
        clock=clock,
    )
    app.state.route_limits = RouteRateLimitService(cfg.limiter.routes, clock=clock)
    app.state.cleanup = PeriodicCleanup(
        [app.state.limiter, *app.state.route_limits.limiters],
        interval_seconds=cfg.limiter.cleanup_interval_seconds,
    )

    app.middleware("http")(request_id_middleware)
    setup_exception_handlers(app)

    app.include_router(rate_limit_router, prefix="/v1")
    app.include_router(health_router)

    logger.info(
        "app.created",
        extra={
            "app_env": cfg.app_env,
            "routes": [policy.endpoint for policy in cfg.limiter.routes],
            "default_limit": cfg.limiter.default_limit,
            "window_ms": cfg.limiter.window_ms,
        },
    )
    return app
