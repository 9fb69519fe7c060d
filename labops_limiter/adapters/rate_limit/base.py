"""Rate limiter interfaces.

Callers (FastAPI dependencies, the route service, the cleanup task) depend on
this abstraction rather than on a concrete storage backend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class RateLimitEntry:
    """Per-identifier window state.

    Attributes:
        count: Requests admitted in the current window (always >= 1).
        reset_time: Epoch milliseconds at which the window expires.
    """

    count: int
    reset_time: int


@dataclass(frozen=True)
class RateLimitResult:
    """Snapshot of a limiter decision.

    Attributes:
        allowed: Whether the request was admitted.
        limit: Effective max requests per window for this call.
        remaining: Requests left in the current window after this call.
        reset_time: Epoch milliseconds when the current window resets, or
            None from ``peek`` when no window is active.
        retry_after_seconds: Suggested wait in seconds when blocked, else None.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_time: int | None
    retry_after_seconds: int | None


class AbstractRateLimiter(ABC):
    """Interface for fixed-window rate limiters."""

    @abstractmethod
    def is_allowed(self, identifier: str, limit: int | None = None) -> bool:
        """Admit or deny one request for ``identifier``.

        Args:
            identifier: Key the quota is tracked against (user id, IP, ...).
            limit: Optional per-call limit overriding the default.

        Returns:
            True when the request is admitted, False when the quota is spent.
        """
        raise NotImplementedError

    @abstractmethod
    def get_remaining_requests(self, identifier: str, limit: int | None = None) -> int:
        """Return the quota left in the active window without consuming it."""
        raise NotImplementedError

    @abstractmethod
    def get_reset_time(self, identifier: str, limit: int | None = None) -> int | None:
        """Return the active window's reset time (epoch ms) or None."""
        raise NotImplementedError

    @abstractmethod
    def check(self, identifier: str, limit: int | None = None) -> RateLimitResult:
        """Admit or deny one request and describe the resulting window."""
        raise NotImplementedError

    @abstractmethod
    def peek(self, identifier: str, limit: int | None = None) -> RateLimitResult:
        """Describe the identifier's window without consuming quota.

        ``allowed`` tells whether the next request would be admitted;
        ``reset_time`` is None when no window is active.
        """
        raise NotImplementedError

    @abstractmethod
    def cleanup(self) -> int:
        """Drop expired entries and return how many were removed."""
        raise NotImplementedError
