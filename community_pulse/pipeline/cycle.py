"""
Refresh pipeline: fetch -> score -> cache -> broadcast.

One cycle fetches every registry entry concurrently, then applies each
result under that source's cache lock:

    success   -> trackers updated, score computed, new EnrichedSnapshot
    failure   -> previous snapshot re-stamped with the error, or a minimal
                 error record when nothing was cached yet
    restricted-> private source without any reference, cached as-is
    superseded-> fetched before the cached data, dropped without touching
                 trackers or subscribers

After all entries are applied the aggregate ``stats_updated`` event is
pushed once.
"""

import asyncio
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

import structlog

from community_pulse.broadcast.broadcaster import (
    TOPIC_SOURCE_UPDATED,
    TOPIC_STATS_UPDATED,
    ChangeBroadcaster,
)
from community_pulse.cache.schemas import (
    GROWTH_TREND_LENGTH,
    HEALTH_TREND_LENGTH,
    EnrichedSnapshot,
)
from community_pulse.cache.snapshot_cache import SnapshotCache
from community_pulse.observability.logging import source_context
from community_pulse.observability.metrics import get_metrics
from community_pulse.observability.tracing import annotate, get_tracer, traced
from community_pulse.pipeline.fetcher import FetchResult, SnapshotFetcher
from community_pulse.pipeline.views import aggregate_stats, summarize_voice
from community_pulse.providers.base import BaseProvider
from community_pulse.providers.schemas import RawSnapshot
from community_pulse.registry.schemas import SourceDescriptor
from community_pulse.registry.service import SourceRegistry
from community_pulse.resolver.resolver import SourceResolver
from community_pulse.scoring import health
from community_pulse.trackers import Trackers

logger = structlog.get_logger(__name__)
tracer = get_tracer(__name__)


def _superseded(result: FetchResult, previous: EnrichedSnapshot | None) -> bool:
    """True when ``result`` was fetched before the data already cached."""
    return (
        result.snapshot is not None
        and previous is not None
        and previous.raw is not None
        and result.snapshot.fetched_at < previous.last_fetched
    )


class RefreshPipeline:
    """
    Owns one fetch cycle and the per-source apply step.

    Usage:
        pipeline = RefreshPipeline(registry, provider, resolver, cache, trackers, broadcaster)
        await pipeline.run_cycle()
        await pipeline.refresh_source("EX_HITMEN")
    """

    def __init__(
        self,
        registry: SourceRegistry,
        provider: BaseProvider,
        resolver: SourceResolver,
        cache: SnapshotCache,
        trackers: Trackers,
        broadcaster: ChangeBroadcaster,
        fetch_timeout: float = 15.0,
    ):
        self.registry = registry
        self.provider = provider
        self.resolver = resolver
        self.cache = cache
        self.trackers = trackers
        self.broadcaster = broadcaster
        self._fetcher = SnapshotFetcher(provider, resolver, timeout=fetch_timeout)
        self._cycle_lock = asyncio.Lock()
        self._cycles_completed = 0

    @property
    def is_running(self) -> bool:
        """Whether a full cycle is in flight."""
        return self._cycle_lock.locked()

    @property
    def cycles_completed(self) -> int:
        return self._cycles_completed

    async def run_cycle(self, trigger: str = "scheduler") -> list[FetchResult]:
        """
        Fetch, score and cache every registry entry, then push aggregates.

        Cycles never overlap: a second caller waits for the first to finish.

        Returns:
            One FetchResult per registry entry, in registry order.
        """
        async with self._cycle_lock:
            start = time.monotonic()
            with traced(tracer, "refresh.cycle", {"trigger": trigger, "sources": len(self.registry)}):
                results = await self._fetcher.fetch_all(self.registry)
                await asyncio.gather(*(self._apply(r) for r in results))

                self.cache.mark_cycle_complete()
                await self.broadcaster.broadcast(TOPIC_STATS_UPDATED, self.aggregate_stats())

            elapsed = time.monotonic() - start
            self._cycles_completed += 1
            metrics = get_metrics()
            metrics.record_cycle(trigger, elapsed)
            metrics.set_cache_size(self.cache.size)
            metrics.set_upstream_connected(self.provider.connected)

            failed = [r.source_id for r in results if r.error is not None]
            logger.info(
                "Fetch cycle completed",
                trigger=trigger,
                sources=len(results),
                failed=failed,
                elapsed_seconds=round(elapsed, 2),
            )
            return results

    async def refresh_source(self, source_id: str) -> EnrichedSnapshot:
        """
        Fetch and apply a single source outside the regular cycle.

        Raises:
            NotFoundError: Unknown source id.
        """
        descriptor = self.registry.require(source_id)
        result = await self._fetcher.fetch_one(descriptor)
        return await self._apply(result)

    def aggregate_stats(self) -> dict[str, Any]:
        return aggregate_stats(self.registry, self.cache)

    def restamp_voice(self, source_id: str) -> EnrichedSnapshot | None:
        """Copy current voice occupancy into the cached snapshot.

        The caller holds ``cache.lock(source_id)``.
        """
        current = self.cache.get(source_id)
        if current is None or current.raw is None:
            return current
        state = self.trackers.voice.state(source_id)
        return self.cache.upsert(
            source_id,
            replace(
                current,
                voice_channels=summarize_voice(state),
                peak_voice_occupancy=state.peak_occupancy,
            ),
        )

    async def _apply(self, result: FetchResult) -> EnrichedSnapshot:
        source_id = result.source_id
        async with self.cache.lock(source_id):
            with source_context(source_id), traced(
                tracer, "refresh.source", {"source_id": source_id},
            ) as span:
                previous = self.cache.get(source_id)

                if _superseded(result, previous):
                    # A newer fetch was applied while this one was in flight.
                    annotate(span, outcome="superseded")
                    logger.debug(
                        "Dropping superseded snapshot",
                        fetched_at=result.snapshot.fetched_at.isoformat(),
                        cached_at=previous.last_fetched.isoformat(),
                    )
                    return previous

                if result.snapshot is not None:
                    snapshot = self._enrich(result.descriptor, result.snapshot)
                    annotate(span, outcome="fresh", health_score=snapshot.health_score.overall)
                elif result.restricted:
                    snapshot = previous or EnrichedSnapshot(descriptor=result.descriptor)
                    annotate(span, outcome="restricted")
                else:
                    now = datetime.now(timezone.utc)
                    message = str(result.error)
                    annotate(span, outcome="stale" if previous else "error", error=message)
                    if previous is not None:
                        snapshot = previous.with_error(message, now)
                    else:
                        snapshot = EnrichedSnapshot(
                            descriptor=result.descriptor,
                            error=message,
                            last_error_at=now,
                        )

                stored = self.cache.upsert(source_id, snapshot)
                await self.broadcaster.broadcast(
                    TOPIC_SOURCE_UPDATED, stored.to_dict(), source_id=source_id,
                )
                return stored

    def _enrich(self, descriptor: SourceDescriptor, raw: RawSnapshot) -> EnrichedSnapshot:
        source_id = descriptor.id
        growth = self.trackers.growth
        voice = self.trackers.voice

        growth.record_growth(source_id, raw.member_count, timestamp=raw.fetched_at)
        if raw.voice_channels is not None:
            voice.observe_occupancy(source_id, raw.voice_channels, observed_at=raw.fetched_at)
        voice_state = voice.state(source_id)

        score = health.score(
            raw,
            growth.growth_window(source_id),
            self.trackers.activity.state(source_id),
            voice_state,
        )
        growth.record_health(source_id, score.overall, timestamp=raw.fetched_at)
        get_metrics().set_health_score(source_id, score.overall)

        return EnrichedSnapshot(
            descriptor=descriptor,
            raw=raw,
            health_score=score,
            growth_trend=tuple(growth.growth_window(source_id, GROWTH_TREND_LENGTH)),
            health_trend=tuple(growth.health_window(source_id, HEALTH_TREND_LENGTH)),
            voice_channels=summarize_voice(voice_state),
            peak_voice_occupancy=voice_state.peak_occupancy,
            last_fetched=raw.fetched_at,
        )
