"""
Session Sweeper - periodic timeout checks and retention cleanup

Two asyncio tasks poll the orchestrator: one resolves idle sessions, the
other evicts sessions past the retention window.
"""
import asyncio
from typing import Any, Awaitable, Callable, List, Optional

from leadbot.core.config import settings
from leadbot.core.logging import logger


class SessionSweeper:
    """Runs the orchestrator's timeout and cleanup sweeps on an interval."""

    def __init__(
        self,
        orchestrator: Any,
        timeout_interval: Optional[float] = None,
        cleanup_interval: Optional[float] = None,
    ):
        self.orchestrator = orchestrator
        self.timeout_interval = timeout_interval or settings.TIMEOUT_CHECK_INTERVAL_SECONDS
        self.cleanup_interval = cleanup_interval or settings.CLEANUP_INTERVAL_SECONDS
        self._running = False
        self._tasks: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return self._running

    async def _loop(self, name: str, interval: float, sweep: Callable[[], Awaitable[Any]]):
        while self._running:
            await asyncio.sleep(interval)
            try:
                await sweep()
            except Exception as e:
                logger.error(f"Error in {name} sweep: {e}")

    def start(self):
        """Start both sweep tasks. Must be called from a running event loop."""
        if self._running:
            return

        self._running = True
        self._tasks = [
            asyncio.create_task(
                self._loop("timeout", self.timeout_interval, self.orchestrator.check_timeouts)
            ),
            asyncio.create_task(
                self._loop("cleanup", self.cleanup_interval, self.orchestrator.cleanup_sessions)
            ),
        ]
        logger.info(
            f"Started session sweeper (timeouts every {self.timeout_interval}s, "
            f"cleanup every {self.cleanup_interval}s)"
        )

    async def stop(self):
        """Cancel the sweep tasks and wait for them to finish."""
        self._running = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        logger.info("Stopped session sweeper")

    async def sweep_now(self) -> dict:
        """Run one timeout check and one cleanup immediately."""
        outcomes = await self.orchestrator.check_timeouts()
        evicted = await self.orchestrator.cleanup_sessions()
        return {"timed_out": outcomes, "evicted": evicted}
