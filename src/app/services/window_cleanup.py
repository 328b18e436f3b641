"""
Window Cleanup Worker

Periodically purges rate limit windows past their retention horizon.
Started and stopped from the application lifespan.
"""

import asyncio
import logging
from typing import Optional

from src.app.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class WindowCleanupWorker:
    def __init__(self, rate_limiter: RateLimiter, interval_seconds: float = 300):
        self.rate_limiter = rate_limiter
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="rate-limit-window-cleanup")
        logger.info(f"Rate limit window cleanup started (every {self.interval_seconds}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Rate limit window cleanup stopped")

    async def run_once(self) -> int:
        try:
            return await self.rate_limiter.cleanup()
        except Exception:
            # A failed sweep is retried on the next tick
            logger.exception("Rate limit window sweep failed")
            return 0

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            await self.run_once()
