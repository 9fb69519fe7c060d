"""Per-route quotas for dashboard endpoints.

Each route policy (endpoint prefix, limit, window) owns a dedicated
fixed-window limiter keyed by client id. An endpoint is matched against the
policies in order and the first prefix match wins; endpoints with no policy
are not limited.

If a limiter fails during a check or a status query the request is let
through (fail open): blocking legitimate traffic is worse than a missed
throttle.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable

from labops_limiter.adapters.rate_limit.base import AbstractRateLimiter
from labops_limiter.adapters.rate_limit.in_memory import (
    InMemoryFixedWindowRateLimiter,
    epoch_ms,
)
from labops_limiter.core.config import RoutePolicy
from labops_limiter.core.errors import ValidationAppError
from labops_limiter.core.logging import hash_key

logger = logging.getLogger(__name__)

# Reported as "remaining" for endpoints without a policy.
UNLIMITED_REMAINING = 1000

LimiterFactory = Callable[[RoutePolicy], AbstractRateLimiter]


@dataclass(frozen=True)
class RouteCheckResult:
    """Outcome of a per-route check.

    ``policy``, ``limit`` and ``reset_time`` are None when no policy matched.
    """

    allowed: bool
    remaining: int
    endpoint: str
    policy: RoutePolicy | None = None
    limit: int | None = None
    reset_time: int | None = None
    retry_after_seconds: int | None = None


class RouteRateLimitService:
    """Match endpoints to route policies and throttle clients per route."""

    def __init__(
        self,
        policies: Iterable[RoutePolicy],
        *,
        clock: Callable[[], int] = epoch_ms,
        limiter_factory: LimiterFactory | None = None,
    ) -> None:
        """Build one limiter per policy.

        Args:
            policies: Route policies, in matching order.
            clock: Time source (epoch ms) for the default limiters.
            limiter_factory: Optional builder replacing the in-memory limiter.

        Raises:
            ValidationAppError: If two policies share the same prefix.
        """
        factory = limiter_factory or (
            lambda policy: InMemoryFixedWindowRateLimiter(
                default_limit=policy.limit,
                window_ms=policy.window_seconds * 1000,
                clock=clock,
            )
        )

        self._routes: list[tuple[RoutePolicy, AbstractRateLimiter]] = []
        seen: set[str] = set()
        for policy in policies:
            if policy.endpoint in seen:
                raise ValidationAppError(
                    code="duplicate_route_policy",
                    message=f"More than one rate limit policy for {policy.endpoint}",
                    details={"endpoint": policy.endpoint},
                )
            seen.add(policy.endpoint)
            self._routes.append((policy, factory(policy)))

    @property
    def policies(self) -> list[RoutePolicy]:
        return [policy for policy, _ in self._routes]

    @property
    def limiters(self) -> list[AbstractRateLimiter]:
        return [limiter for _, limiter in self._routes]

    def match(self, endpoint: str) -> RoutePolicy | None:
        """Return the first policy whose prefix matches endpoint."""
        route = self._find(endpoint)
        return route[0] if route else None

    def _find(self, endpoint: str) -> tuple[RoutePolicy, AbstractRateLimiter] | None:
        for policy, limiter in self._routes:
            if endpoint.startswith(policy.endpoint):
                return policy, limiter
        return None

    def check(self, endpoint: str, client_id: str) -> RouteCheckResult:
        """Consume one request for client_id on the route matching endpoint."""
        route = self._find(endpoint)
        if route is None:
            return RouteCheckResult(allowed=True, remaining=UNLIMITED_REMAINING, endpoint=endpoint)

        policy, limiter = route
        try:
            result = limiter.check(client_id)
        except Exception:
            logger.exception(
                "route_limit.check_failed",
                extra={"route": policy.endpoint, "client_hash": hash_key(client_id)},
            )
            return self._fail_open(endpoint, policy)

        log = logger.info if result.allowed else logger.warning
        log(
            "route_limit.allowed" if result.allowed else "route_limit.exceeded",
            extra={
                "route": policy.endpoint,
                "client_hash": hash_key(client_id),
                "limit": result.limit,
                "remaining": result.remaining,
                "window_s": policy.window_seconds,
            },
        )
        return RouteCheckResult(
            allowed=result.allowed,
            remaining=result.remaining,
            endpoint=endpoint,
            policy=policy,
            limit=result.limit,
            reset_time=result.reset_time,
            retry_after_seconds=result.retry_after_seconds,
        )

    def status(self, endpoint: str, client_id: str) -> RouteCheckResult:
        """Describe client_id's quota on the matching route without consuming it."""
        route = self._find(endpoint)
        if route is None:
            return RouteCheckResult(allowed=True, remaining=UNLIMITED_REMAINING, endpoint=endpoint)

        policy, limiter = route
        try:
            snapshot = limiter.peek(client_id)
        except Exception:
            logger.exception(
                "route_limit.status_failed",
                extra={"route": policy.endpoint, "client_hash": hash_key(client_id)},
            )
            return self._fail_open(endpoint, policy)

        return RouteCheckResult(
            allowed=snapshot.allowed,
            remaining=snapshot.remaining,
            endpoint=endpoint,
            policy=policy,
            limit=snapshot.limit,
            reset_time=snapshot.reset_time,
            retry_after_seconds=snapshot.retry_after_seconds,
        )

    @staticmethod
    def _fail_open(endpoint: str, policy: RoutePolicy) -> RouteCheckResult:
        return RouteCheckResult(
            allowed=True,
            remaining=policy.limit,
            endpoint=endpoint,
            policy=policy,
            limit=policy.limit,
        )
