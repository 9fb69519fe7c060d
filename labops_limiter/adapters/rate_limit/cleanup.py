"""Background cleanup of expired limiter entries.

Identifiers that show up once (a scanner's IP, an abandoned session) would
otherwise stay in memory forever. :class:`PeriodicCleanup` sweeps a set of
limiters on a fixed interval. It never starts on import: the application
lifespan calls :meth:`PeriodicCleanup.start` on startup and awaits
:meth:`PeriodicCleanup.stop` on shutdown.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Iterable

from labops_limiter.adapters.rate_limit.base import AbstractRateLimiter

logger = logging.getLogger(__name__)


class PeriodicCleanup:
    """Asyncio task calling ``cleanup()`` on each limiter every interval."""

    def __init__(
        self,
        limiters: Iterable[AbstractRateLimiter],
        *,
        interval_seconds: float = 300.0,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")

        self._limiters = list(limiters)
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self) -> int:
        """Sweep every limiter once.

        A limiter whose cleanup raises is logged and skipped so the others
        are still swept.

        Returns:
            Total number of entries removed.
        """
        removed = 0
        for limiter in self._limiters:
            try:
                removed += limiter.cleanup()
            except Exception:
                logger.exception(
                    "rate_limit.cleanup_failed",
                    extra={"limiter": type(limiter).__name__},
                )
        return removed

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop.

        Calling start on an already running task is a no-op.

        Raises:
            RuntimeError: If no event loop is running.
        """
        if self.running:
            return

        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name="rate-limit-cleanup")
        logger.info(
            "rate_limit.cleanup_started",
            extra={"interval_s": self._interval, "limiters": len(self._limiters)},
        )

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("rate_limit.cleanup_stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            removed = self.run_once()
            if removed:
                logger.info("rate_limit.cleanup", extra={"removed": removed})
