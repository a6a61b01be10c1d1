"""Tests for RefreshScheduler."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

from community_pulse.pipeline.scheduler import RefreshScheduler


def _pipeline(side_effect=None) -> MagicMock:
    pipeline = MagicMock()
    pipeline.run_cycle = AsyncMock(side_effect=side_effect)
    return pipeline


class TestRefreshScheduler:
    async def test_runs_immediately_then_on_interval(self):
        pipeline = _pipeline()
        scheduler = RefreshScheduler(pipeline, interval_seconds=0.05)

        await scheduler.start()
        await asyncio.sleep(0.01)
        assert pipeline.run_cycle.await_count == 1

        await asyncio.sleep(0.12)
        await scheduler.stop()

        assert pipeline.run_cycle.await_count >= 2
        pipeline.run_cycle.assert_awaited_with(trigger="scheduler")

    async def test_delayed_first_run(self):
        pipeline = _pipeline()
        scheduler = RefreshScheduler(pipeline, interval_seconds=10, run_immediately=False)

        await scheduler.start()
        await asyncio.sleep(0.01)

        assert pipeline.run_cycle.await_count == 0
        assert 9 < scheduler.seconds_until_next_run <= 10
        await scheduler.stop()

    async def test_failing_cycle_keeps_loop_alive(self):
        pipeline = _pipeline(side_effect=RuntimeError("boom"))
        scheduler = RefreshScheduler(pipeline, interval_seconds=0.02)

        await scheduler.start()
        await asyncio.sleep(0.07)

        assert scheduler.running
        assert pipeline.run_cycle.await_count >= 2
        await scheduler.stop()

    async def test_stop_cancels_cycle_in_flight(self):
        started = asyncio.Event()

        async def slow_cycle(trigger):
            started.set()
            await asyncio.sleep(10)

        pipeline = _pipeline(side_effect=slow_cycle)
        scheduler = RefreshScheduler(pipeline, interval_seconds=60)

        await scheduler.start()
        await started.wait()
        await asyncio.wait_for(scheduler.stop(), timeout=1)

        assert not scheduler.running
        assert scheduler.seconds_until_next_run is None

    async def test_start_is_idempotent(self):
        pipeline = _pipeline()
        scheduler = RefreshScheduler(pipeline, interval_seconds=60)

        await scheduler.start()
        await scheduler.start()
        await asyncio.sleep(0.01)
        await scheduler.stop()

        assert pipeline.run_cycle.await_count == 1

    async def test_stop_without_start(self):
        scheduler = RefreshScheduler(_pipeline(), interval_seconds=60)
        await scheduler.stop()
        assert not scheduler.running
