"""Tests for environment-driven settings."""

import pytest
from pydantic import ValidationError

from labops_limiter.core.config import DEFAULT_ROUTE_POLICIES, LimiterSettings, RoutePolicy


def test_limiter_defaults(monkeypatch) -> None:
    for name in ("LIMITER_DEFAULT_LIMIT", "LIMITER_WINDOW_MS", "LIMITER_ROUTES"):
        monkeypatch.delenv(name, raising=False)

    cfg = LimiterSettings()

    assert cfg.default_limit == 100
    assert cfg.window_ms == 60_000
    assert cfg.cleanup_interval_seconds == 300
    assert cfg.routes == DEFAULT_ROUTE_POLICIES


def test_limiter_settings_from_env(monkeypatch) -> None:
    monkeypatch.setenv("LIMITER_DEFAULT_LIMIT", "3")
    monkeypatch.setenv("LIMITER_WINDOW_MS", "1000")
    monkeypatch.setenv(
        "LIMITER_ROUTES",
        '[{"endpoint": "/api/orders", "limit": 10, "window_seconds": 30}]',
    )

    cfg = LimiterSettings()

    assert cfg.default_limit == 3
    assert cfg.window_ms == 1000
    assert cfg.routes == [RoutePolicy(endpoint="/api/orders", limit=10, window_seconds=30)]


def test_default_routes_are_copied() -> None:
    cfg = LimiterSettings()
    cfg.routes[0].limit = 999

    assert DEFAULT_ROUTE_POLICIES[0].limit == 5


@pytest.mark.parametrize(
    "kwargs",
    [
        {"endpoint": "", "limit": 1, "window_seconds": 1},
        {"endpoint": "/x", "limit": 0, "window_seconds": 1},
        {"endpoint": "/x", "limit": 1, "window_seconds": 0},
    ],
)
def test_route_policy_validation(kwargs) -> None:
    with pytest.raises(ValidationError):
        RoutePolicy(**kwargs)


def test_rejects_non_positive_limit() -> None:
    with pytest.raises(ValidationError):
        LimiterSettings(default_limit=0)
