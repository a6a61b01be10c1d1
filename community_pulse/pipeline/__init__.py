"""Refresh pipeline: fetcher, cycle, scheduler and inbound events."""

from community_pulse.pipeline.cycle import RefreshPipeline
from community_pulse.pipeline.events import InboundEvent, InboundEventRouter
from community_pulse.pipeline.fetcher import FetchResult, SnapshotFetcher
from community_pulse.pipeline.scheduler import RefreshScheduler

__all__ = [
    "FetchResult",
    "InboundEvent",
    "InboundEventRouter",
    "RefreshPipeline",
    "RefreshScheduler",
    "SnapshotFetcher",
]
