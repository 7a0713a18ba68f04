"""Periodic health check scheduler"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

from app.core.config import settings

logger = logging.getLogger(__name__)


class HealthCheckScheduler:
    """Runs ``cycle`` immediately on start and then on a fixed interval.

    Cycles never overlap: ticks that fall due while a cycle is still running
    are skipped, not queued. ``stop`` lets an in-flight cycle finish.
    """

    def __init__(self, cycle: Callable[[], Awaitable], interval: float = None):
        self.cycle = cycle
        self.interval = interval or settings.HEALTH_CHECK_INTERVAL
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self.cycles_run = 0
        self.ticks_skipped = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        """Start the timer; a no-op when already running"""
        if self.is_running:
            logger.debug("Health check scheduler already running")
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="health-check-scheduler")
        logger.info(f"Starting DNS load balancer health checks every {self.interval}s")

    async def stop(self):
        """Stop scheduling; waits for the current cycle to finish"""
        if self._task is None:
            return
        self._stop_event.set()
        await self._task
        self._task = None
        logger.info("DNS load balancer health checks stopped")

    async def _run(self):
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while not self._stop_event.is_set():
            await self._run_cycle()

            next_tick += self.interval
            now = loop.time()
            if now >= next_tick:
                missed = int((now - next_tick) // self.interval) + 1
                self.ticks_skipped += missed
                next_tick += missed * self.interval
                logger.warning(f"Health check cycle overran the interval, skipped {missed} tick(s)")

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=next_tick - now)
            except asyncio.TimeoutError:
                pass

    async def _run_cycle(self):
        try:
            await self.cycle()
        except Exception:
            logger.exception("Error during health check cycle")
        finally:
            self.cycles_run += 1
