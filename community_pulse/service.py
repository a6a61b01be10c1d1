"""
Service wiring - builds and owns every long-lived component.

One ``PulseService`` exists per process. The API lifespan and the CLI
both go through it, so start/stop order lives in one place:

    provider -> broadcaster -> event router -> scheduler   (start)
    scheduler -> event router -> broadcaster -> provider   (stop)
"""

import time

import structlog

from community_pulse.broadcast.broadcaster import ChangeBroadcaster
from community_pulse.broadcast.config import BroadcastConfig
from community_pulse.cache.snapshot_cache import SnapshotCache
from community_pulse.config.settings import Settings, get_settings
from community_pulse.pipeline.cycle import RefreshPipeline
from community_pulse.pipeline.events import InboundEventRouter
from community_pulse.pipeline.scheduler import RefreshScheduler
from community_pulse.providers import create_provider
from community_pulse.providers.base import BaseProvider
from community_pulse.registry.service import SourceRegistry
from community_pulse.resolver.resolver import SourceResolver
from community_pulse.trackers import Trackers

logger = structlog.get_logger(__name__)


class PulseService:
    """
    Container for the registry, provider, cache, trackers and workers.

    Usage:
        service = PulseService.build()
        await service.start()
        ...
        await service.stop()
    """

    def __init__(
        self,
        settings: Settings,
        registry: SourceRegistry,
        provider: BaseProvider,
        broadcast_config: BroadcastConfig | None = None,
    ):
        self.settings = settings
        self.registry = registry
        self.provider = provider
        self.resolver = SourceResolver(provider, ttl_seconds=settings.effective_resolver_ttl)
        self.cache = SnapshotCache(order=registry.ids)
        self.trackers = Trackers()
        self.broadcaster = ChangeBroadcaster(broadcast_config)
        self.pipeline = RefreshPipeline(
            registry=registry,
            provider=provider,
            resolver=self.resolver,
            cache=self.cache,
            trackers=self.trackers,
            broadcaster=self.broadcaster,
            fetch_timeout=settings.fetch_timeout_seconds,
        )
        self.scheduler = RefreshScheduler(
            self.pipeline, interval_seconds=settings.poll_interval_seconds,
        )
        self.events = InboundEventRouter(
            self.pipeline,
            refresh_on_membership_change=settings.refresh_on_membership_change,
        )
        self.started_at: float | None = None

    @classmethod
    def build(
        cls,
        settings: Settings | None = None,
        registry: SourceRegistry | None = None,
        provider: BaseProvider | None = None,
    ) -> "PulseService":
        """Create a service from settings, the bundled registry and the configured provider."""
        settings = settings or get_settings()
        return cls(
            settings=settings,
            registry=registry or SourceRegistry.from_json(),
            provider=provider or create_provider(settings),
        )

    @property
    def uptime_seconds(self) -> float:
        if self.started_at is None:
            return 0.0
        return time.monotonic() - self.started_at

    async def start(self, run_scheduler: bool = True) -> None:
        """Open provider resources and start background workers."""
        self.started_at = time.monotonic()
        await self.provider.start()
        await self.broadcaster.start()
        await self.events.start()
        if run_scheduler:
            await self.scheduler.start()
        logger.info(
            "Service started",
            provider=self.provider.name,
            sources=len(self.registry),
            scheduler=run_scheduler,
        )

    async def stop(self) -> None:
        """Stop workers in reverse order and release provider resources."""
        await self.scheduler.stop()
        await self.events.stop()
        await self.broadcaster.stop()
        await self.provider.close()
        self.cache.clear()
        logger.info("Service stopped")
