"""Unit tests for per-route rate limit policies."""

from unittest.mock import Mock

import pytest

from labops_limiter.core.config import DEFAULT_ROUTE_POLICIES, RoutePolicy
from labops_limiter.core.errors import ValidationAppError
from labops_limiter.services.route_limits import UNLIMITED_REMAINING, RouteRateLimitService


@pytest.fixture
def service(clock) -> RouteRateLimitService:
    return RouteRateLimitService(DEFAULT_ROUTE_POLICIES, clock=clock)


def test_login_allows_five_attempts_per_five_minutes(service, clock) -> None:
    results = [service.check("/auth/login", "user-1") for _ in range(6)]

    assert [r.allowed for r in results] == [True] * 5 + [False]
    assert results[-1].remaining == 0
    assert results[-1].limit == 5
    assert results[-1].retry_after_seconds == 300

    clock.advance(300_000)
    assert service.check("/auth/login", "user-1").allowed is True


def test_prefix_match_shares_route_quota(service) -> None:
    first = service.check("/api/reports/costs", "user-1")
    second = service.check("/api/reports/performance", "user-1")

    assert first.policy.endpoint == "/api/reports"
    assert second.remaining == 48


def test_routes_and_clients_are_isolated(service) -> None:
    for _ in range(5):
        service.check("/auth/login", "user-1")

    assert service.check("/auth/login", "user-1").allowed is False
    assert service.check("/auth/login", "user-2").allowed is True
    assert service.check("/api/inventory", "user-1").remaining == 199


def test_unknown_endpoint_is_unlimited(service) -> None:
    result = service.check("/api/unknown", "user-1")

    assert result.allowed is True
    assert result.remaining == UNLIMITED_REMAINING
    assert result.policy is None
    assert result.limit is None
    assert result.reset_time is None


def test_first_matching_policy_wins(clock) -> None:
    service = RouteRateLimitService(
        [
            RoutePolicy(endpoint="/api/inventory/export", limit=1, window_seconds=60),
            RoutePolicy(endpoint="/api/inventory", limit=10, window_seconds=60),
        ],
        clock=clock,
    )

    assert service.match("/api/inventory/export/csv").limit == 1
    assert service.match("/api/inventory/items").limit == 10
    assert service.match("/api") is None


def test_status_does_not_consume(service, clock) -> None:
    before = service.status("/auth/login", "user-1")
    assert before.allowed is True
    assert before.remaining == 5
    assert before.reset_time is None

    service.check("/auth/login", "user-1")
    after = service.status("/auth/login", "user-1")
    again = service.status("/auth/login", "user-1")

    assert after.remaining == 4
    assert again.remaining == 4
    assert after.reset_time == clock.now + 300_000


def test_status_reports_exhausted_quota(service) -> None:
    for _ in range(5):
        service.check("/auth/login", "user-1")

    status = service.status("/auth/login", "user-1")

    assert status.allowed is False
    assert status.remaining == 0


def test_fails_open_when_limiter_errors() -> None:
    broken = Mock()
    broken.check.side_effect = RuntimeError("store unavailable")
    policy = RoutePolicy(endpoint="/api/appointments", limit=100, window_seconds=60)
    service = RouteRateLimitService([policy], limiter_factory=lambda _: broken)

    result = service.check("/api/appointments", "user-1")

    assert result.allowed is True
    assert result.remaining == 100
    assert result.policy == policy


def test_status_fails_open_when_limiter_errors() -> None:
    broken = Mock()
    broken.peek.side_effect = RuntimeError("store unavailable")
    policy = RoutePolicy(endpoint="/api/appointments", limit=100, window_seconds=60)
    service = RouteRateLimitService([policy], limiter_factory=lambda _: broken)

    result = service.status("/api/appointments", "user-1")

    assert result.allowed is True
    assert result.remaining == 100
    assert result.limit == 100
    assert result.reset_time is None


def test_status_is_consistent_at_window_boundary(service, clock) -> None:
    service.check("/auth/login", "user-1")
    clock.advance(300_000)

    status = service.status("/auth/login", "user-1")

    assert status.remaining == 5
    assert status.reset_time is None


def test_duplicate_policies_rejected() -> None:
    policies = [
        RoutePolicy(endpoint="/auth/login", limit=5, window_seconds=300),
        RoutePolicy(endpoint="/auth/login", limit=10, window_seconds=60),
    ]

    with pytest.raises(ValidationAppError) as exc_info:
        RouteRateLimitService(policies)

    assert exc_info.value.code == "duplicate_route_policy"


def test_exposes_one_limiter_per_policy(service) -> None:
    assert len(service.limiters) == len(DEFAULT_ROUTE_POLICIES)
    assert [p.endpoint for p in service.policies] == [
        "/auth/login",
        "/api/appointments",
        "/api/inventory",
        "/api/reports",
    ]
