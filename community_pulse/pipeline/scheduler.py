"""
Refresh scheduler - drives fetch cycles on a fixed interval.

Runs one cycle immediately on start, then one every ``interval_seconds``.
A failing cycle is logged and the loop keeps going. ``stop()`` cancels
the loop, including a cycle in flight; cache writes are single
assignments, so a cancelled cycle leaves no partial record behind.
"""

import asyncio
import time

import structlog

from community_pulse.pipeline.cycle import RefreshPipeline

logger = structlog.get_logger(__name__)


class RefreshScheduler:
    """
    Periodic trigger for ``RefreshPipeline.run_cycle``.

    Usage:
        scheduler = RefreshScheduler(pipeline, interval_seconds=120)
        await scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        pipeline: RefreshPipeline,
        interval_seconds: float = 120,
        run_immediately: bool = True,
    ):
        self._pipeline = pipeline
        self._interval = interval_seconds
        self._run_immediately = run_immediately
        self._running = False
        self._task: asyncio.Task | None = None
        self._next_run: float | None = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def seconds_until_next_run(self) -> float | None:
        if not self._running or self._next_run is None:
            return None
        return max(0.0, self._next_run - time.monotonic())

    async def start(self) -> None:
        """Spawn the background loop. Returns immediately."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop(), name="refresh-scheduler")
        logger.info("Refresh scheduler started", interval_seconds=self._interval)

    async def stop(self) -> None:
        """Stop the loop and cancel a cycle in flight."""
        if not self._running:
            return
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._next_run = None
        logger.info("Refresh scheduler stopped")

    async def _loop(self) -> None:
        if not self._run_immediately:
            await self._wait()

        while self._running:
            try:
                await self._pipeline.run_cycle(trigger="scheduler")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(
                    "Fetch cycle failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )
            await self._wait()

    async def _wait(self) -> None:
        self._next_run = time.monotonic() + self._interval
        await asyncio.sleep(self._interval)
