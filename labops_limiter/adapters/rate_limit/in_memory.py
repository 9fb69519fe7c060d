"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit,
  and a restart forgets every window.
- Thread-safe: a lock guards the state map.
- Windows start at the first admitted request for a key (not aligned to the
  clock) and last ``window_ms`` milliseconds.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from typing import Callable

from labops_limiter.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitEntry,
    RateLimitResult,
)

logger = logging.getLogger(__name__)

BucketKey = tuple[str, int]


def epoch_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Fixed-window limiter keyed by identifier.

    A per-call ``limit`` override selects its own bucket: state is keyed by
    ``(identifier, effective_limit)``, so a window opened under one limit is
    never reused by a call with a different one.
    """

    def __init__(
        self,
        *,
        default_limit: int = 100,
        window_ms: int = 60_000,
        clock: Callable[[], int] = epoch_ms,
    ) -> None:
        """Initialize the limiter.

        Args:
            default_limit: Maximum admitted requests per window.
            window_ms: Window length in milliseconds.
            clock: Time source returning epoch milliseconds.

        Raises:
            ValueError: If default_limit or window_ms are invalid.
        """
        if default_limit < 1:
            raise ValueError("default_limit must be >= 1")
        if window_ms < 1:
            raise ValueError("window_ms must be >= 1")

        self._default_limit = default_limit
        self._window_ms = window_ms
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[BucketKey, RateLimitEntry] = {}

    @property
    def default_limit(self) -> int:
        return self._default_limit

    @property
    def window_ms(self) -> int:
        return self._window_ms

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _effective_limit(self, limit: int | None) -> int:
        return limit or self._default_limit

    def _active_entry(self, key: BucketKey, now: int) -> RateLimitEntry | None:
        """Return the entry for key if its window is still open."""
        entry = self._entries.get(key)
        if entry is None or now >= entry.reset_time:
            return None
        return entry

    def _admit_locked(self, key: BucketKey, limit: int, now: int) -> tuple[bool, RateLimitEntry]:
        entry = self._active_entry(key, now)
        if entry is None:
            entry = RateLimitEntry(count=1, reset_time=now + self._window_ms)
            self._entries[key] = entry
            return True, entry

        if entry.count >= limit:
            return False, entry

        entry.count += 1
        return True, entry

    def is_allowed(self, identifier: str, limit: int | None = None) -> bool:
        effective = self._effective_limit(limit)
        now = self._clock()
        with self._lock:
            allowed, _ = self._admit_locked((identifier, effective), effective, now)
        return allowed

    def get_remaining_requests(self, identifier: str, limit: int | None = None) -> int:
        effective = self._effective_limit(limit)
        now = self._clock()
        with self._lock:
            entry = self._active_entry((identifier, effective), now)
            if entry is None:
                return effective
            return max(0, effective - entry.count)

    def get_reset_time(self, identifier: str, limit: int | None = None) -> int | None:
        effective = self._effective_limit(limit)
        now = self._clock()
        with self._lock:
            entry = self._active_entry((identifier, effective), now)
            return entry.reset_time if entry else None

    def check(self, identifier: str, limit: int | None = None) -> RateLimitResult:
        """Consume one unit for identifier and report the window state.

        Admission, remaining quota and reset time are computed under a single
        lock acquisition, so the snapshot is consistent with the decision.
        """
        effective = self._effective_limit(limit)
        now = self._clock()
        with self._lock:
            allowed, entry = self._admit_locked((identifier, effective), effective, now)
            remaining = max(0, effective - entry.count)
            reset_time = entry.reset_time

        retry_after = None
        if not allowed:
            retry_after = max(0, int(math.ceil((reset_time - now) / 1000)))

        return RateLimitResult(
            allowed=allowed,
            limit=effective,
            remaining=remaining,
            reset_time=reset_time,
            retry_after_seconds=retry_after,
        )

    def peek(self, identifier: str, limit: int | None = None) -> RateLimitResult:
        effective = self._effective_limit(limit)
        now = self._clock()
        with self._lock:
            entry = self._active_entry((identifier, effective), now)
            if entry is None:
                return RateLimitResult(
                    allowed=True,
                    limit=effective,
                    remaining=effective,
                    reset_time=None,
                    retry_after_seconds=None,
                )
            remaining = max(0, effective - entry.count)
            reset_time = entry.reset_time

        retry_after = None
        if remaining == 0:
            retry_after = max(0, int(math.ceil((reset_time - now) / 1000)))

        return RateLimitResult(
            allowed=remaining > 0,
            limit=effective,
            remaining=remaining,
            reset_time=reset_time,
            retry_after_seconds=retry_after,
        )

    def cleanup(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if now >= entry.reset_time]
            for key in expired:
                del self._entries[key]
            remaining = len(self._entries)

        if expired:
            logger.debug(
                "rate_limit.cleanup",
                extra={"removed": len(expired), "tracked": remaining},
            )
        return len(expired)
