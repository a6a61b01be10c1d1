"""
Snapshot fetcher - resolves and fetches every registry entry concurrently.

Each entry is isolated: a resolution failure, timeout or malformed payload
becomes a FetchResult carrying the error for that entry only. Nothing
raised by the provider escapes ``fetch_all``.
"""

import asyncio
import time
from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from community_pulse.errors import FetchError, PulseError, ResolutionError
from community_pulse.observability.logging import source_context
from community_pulse.observability.metrics import get_metrics
from community_pulse.providers.base import BaseProvider
from community_pulse.providers.schemas import RawSnapshot
from community_pulse.registry.schemas import SourceDescriptor
from community_pulse.resolver.resolver import SourceResolver

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class FetchResult:
    """Outcome of one entry's fetch attempt.

    Exactly one of ``snapshot`` / ``error`` is set, except for restricted
    short-circuits, which carry neither.
    """

    descriptor: SourceDescriptor
    provider_id: str | None = None
    snapshot: RawSnapshot | None = None
    error: PulseError | None = None
    restricted: bool = False

    @property
    def ok(self) -> bool:
        return self.snapshot is not None

    @property
    def source_id(self) -> str:
        return self.descriptor.id


class SnapshotFetcher:
    """
    Resolve-then-fetch for registry entries.

    Args:
        provider: Upstream provider.
        resolver: Reference resolver (shares the provider).
        timeout: Upper bound in seconds for one entry (resolution + fetch).
    """

    def __init__(
        self,
        provider: BaseProvider,
        resolver: SourceResolver,
        timeout: float = 15.0,
    ) -> None:
        self._provider = provider
        self._resolver = resolver
        self._timeout = timeout

    async def fetch_all(self, descriptors: Iterable[SourceDescriptor]) -> list[FetchResult]:
        """Fetch every entry concurrently. Results follow input order."""
        return list(await asyncio.gather(*(self.fetch_one(d) for d in descriptors)))

    async def fetch_one(self, descriptor: SourceDescriptor) -> FetchResult:
        """Fetch a single entry, converting every failure into a result."""
        with source_context(descriptor.id):
            return await self._fetch_one(descriptor)

    async def _fetch_one(self, descriptor: SourceDescriptor) -> FetchResult:
        if descriptor.is_private and not descriptor.has_reference:
            return FetchResult(descriptor=descriptor, restricted=True)

        start = time.monotonic()
        provider_id: str | None = None
        try:
            async with asyncio.timeout(self._timeout):
                provider_id = await self._resolver.resolve(descriptor)
                snapshot = await self._provider.fetch_snapshot(provider_id)
        except ResolutionError as e:
            return self._failed(descriptor, provider_id, e)
        except TimeoutError:
            error = FetchError(
                descriptor.id,
                f"Timed out after {self._timeout:g}s",
                timed_out=True,
            )
            return self._failed(descriptor, provider_id, error)
        except Exception as e:
            error = FetchError(descriptor.id, f"{type(e).__name__}: {e}")
            return self._failed(descriptor, provider_id, error)

        get_metrics().record_fetch_latency(descriptor.id, time.monotonic() - start)
        return FetchResult(descriptor=descriptor, provider_id=provider_id, snapshot=snapshot)

    @staticmethod
    def _failed(
        descriptor: SourceDescriptor,
        provider_id: str | None,
        error: PulseError,
    ) -> FetchResult:
        logger.warning(
            "Source fetch failed",
            source_id=descriptor.id,
            error=str(error),
            error_type=type(error).__name__,
        )
        get_metrics().record_fetch_error(descriptor.id, type(error).__name__)
        return FetchResult(descriptor=descriptor, provider_id=provider_id, error=error)
