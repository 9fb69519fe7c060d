"""Rate limiting dependency for this service's own routes.

Callers are throttled per API key, falling back to the client IP when no key
is sent. The limiter is created by the app factory and read from
``request.app.state``; nothing here holds module-level state.
"""

from __future__ import annotations

import logging
import math
from typing import Annotated

from fastapi import Header, HTTPException, Request, status

from labops_limiter.adapters.rate_limit.base import AbstractRateLimiter
from labops_limiter.core.config import Settings
from labops_limiter.core.logging import hash_key

logger = logging.getLogger(__name__)


def get_rate_limiter(request: Request) -> AbstractRateLimiter:
    """Return the service-level limiter registered on the app."""
    return request.app.state.limiter


def build_rate_limit_key(request: Request, x_api_key: str | None) -> str:
    """Namespaced limiter key: ``api_key:<digest>`` or ``ip:<host>``."""
    if x_api_key:
        return f"api_key:{hash_key(x_api_key)}"

    client_host = request.client.host if request.client else "unknown"
    return f"ip:{client_host}"


async def enforce_rate_limit(
    request: Request,
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency consuming one unit of the caller's quota.

    Raises:
        HTTPException: 429 Too Many Requests when the quota is spent.
    """
    app_settings: Settings = request.app.state.settings
    if not app_settings.app.rate_limit_enabled:
        return

    limiter = get_rate_limiter(request)
    key = build_rate_limit_key(request, x_api_key)
    key_type = "api_key" if x_api_key else "ip"

    result = limiter.check(key)
    if result.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "key_type": key_type,
                "key_hash": hash_key(key),
                "limit": result.limit,
                "remaining": result.remaining,
            },
        )
        return

    retry_after = result.retry_after_seconds or 0
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_type": key_type,
            "key_hash": hash_key(key),
            "limit": result.limit,
            "window_ms": app_settings.limiter.window_ms,
            "retry_after_s": retry_after,
        },
    )

    headers: dict[str, str] = {}
    if app_settings.app.rate_limit_include_headers:
        headers["Retry-After"] = str(retry_after)
        headers["X-RateLimit-Limit"] = str(result.limit)
        headers["X-RateLimit-Remaining"] = str(result.remaining)
        headers["X-RateLimit-Reset"] = str(math.ceil(result.reset_time / 1000))

    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Rate limit exceeded. Try again later.",
        headers=headers or None,
    )
