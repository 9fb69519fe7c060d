"""Rate limiting adapters.

The limiters here keep their state in process memory. The HTTP layer and the
route service depend on :class:`AbstractRateLimiter`, so a shared store can
replace the in-memory one without touching callers.
"""

from labops_limiter.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitEntry,
    RateLimitResult,
)
from labops_limiter.adapters.rate_limit.cleanup import PeriodicCleanup
from labops_limiter.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "InMemoryFixedWindowRateLimiter",
    "PeriodicCleanup",
    "RateLimitEntry",
    "RateLimitResult",
]
