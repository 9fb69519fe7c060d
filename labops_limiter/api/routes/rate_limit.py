from __future__ import annotations

import math
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, Response, status

from labops_limiter.core.auth import verify_api_key
from labops_limiter.core.rate_limit import enforce_rate_limit
from labops_limiter.schemas.rate_limit import RateLimitCheckRequest, RateLimitCheckResponse
from labops_limiter.services.route_limits import RouteCheckResult, RouteRateLimitService

router = APIRouter(tags=["Rate Limit"])


def get_route_limits(request: Request) -> RouteRateLimitService:
    return request.app.state.route_limits


def _to_response(result: RouteCheckResult) -> RateLimitCheckResponse:
    return RateLimitCheckResponse(
        allowed=result.allowed,
        remaining=result.remaining,
        endpoint=result.endpoint,
        limit=result.limit,
        reset_time=result.reset_time,
        retry_after_seconds=result.retry_after_seconds,
        policy=result.policy,
    )


def _apply_headers(response: Response, result: RouteCheckResult) -> None:
    if result.limit is None:
        return
    response.headers["X-RateLimit-Limit"] = str(result.limit)
    response.headers["X-RateLimit-Remaining"] = str(result.remaining)
    if result.reset_time is not None:
        response.headers["X-RateLimit-Reset"] = str(math.ceil(result.reset_time / 1000))
    if result.retry_after_seconds is not None:
        response.headers["Retry-After"] = str(result.retry_after_seconds)


@router.post(
    "/rate-limit/check",
    response_model=RateLimitCheckResponse,
    responses={status.HTTP_429_TOO_MANY_REQUESTS: {"model": RateLimitCheckResponse}},
    dependencies=[Depends(verify_api_key), Depends(enforce_rate_limit)],
)
async def check_rate_limit(
    body: RateLimitCheckRequest,
    response: Response,
    route_limits: Annotated[RouteRateLimitService, Depends(get_route_limits)],
) -> RateLimitCheckResponse:
    """Consume one request for ``client_id`` on the route matching ``endpoint``.

    Returns 200 when admitted and 429 when the route's quota is spent; both
    carry ``X-RateLimit-*`` headers when a policy matched.
    """
    result = route_limits.check(body.endpoint, body.client_id)
    _apply_headers(response, result)
    if not result.allowed:
        response.status_code = status.HTTP_429_TOO_MANY_REQUESTS
    return _to_response(result)


@router.get(
    "/rate-limit/status",
    response_model=RateLimitCheckResponse,
    dependencies=[Depends(verify_api_key), Depends(enforce_rate_limit)],
)
async def rate_limit_status(
    response: Response,
    route_limits: Annotated[RouteRateLimitService, Depends(get_route_limits)],
    endpoint: Annotated[str, Query(min_length=1)],
    client_id: Annotated[str, Query(min_length=1)],
) -> RateLimitCheckResponse:
    """Report the client's quota on a route without consuming any of it."""
    result = route_limits.status(endpoint, client_id)
    _apply_headers(response, result)
    return _to_response(result)
