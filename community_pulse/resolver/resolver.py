"""Resolver: external reference -> stable provider id, with a small TTL cache."""

import time

import structlog

from community_pulse.errors import ResolutionError
from community_pulse.providers.base import BaseProvider
from community_pulse.registry.schemas import SourceDescriptor

logger = structlog.get_logger(__name__)


class SourceResolver:
    """Turns a descriptor into the id the provider understands.

    Descriptors without an external reference resolve to their configured
    ``provider_id`` with no external call. Everything else costs one
    provider lookup, cached for ``ttl_seconds`` (0 disables caching). The
    caller keeps the TTL at or below one fetch interval.

    The resolver also remembers which descriptor each provider id belongs
    to, so inbound events that only carry an upstream id can be routed.
    """

    def __init__(self, provider: BaseProvider, ttl_seconds: float = 0) -> None:
        self._provider = provider
        self._ttl = ttl_seconds
        self._cache: dict[str, tuple[str, float]] = {}
        self._reverse: dict[str, str] = {}

    async def resolve(self, descriptor: SourceDescriptor) -> str:
        """
        Resolve a descriptor to a provider id.

        Raises:
            ResolutionError: No reference at all, or the lookup failed.
        """
        if not descriptor.external_ref:
            if not descriptor.provider_id:
                raise ResolutionError(descriptor.id, "No external reference or provider id configured")
            self._reverse[descriptor.provider_id] = descriptor.id
            return descriptor.provider_id

        cached = self._cache.get(descriptor.id)
        now = time.monotonic()
        if cached is not None and (now - cached[1]) < self._ttl:
            return cached[0]

        try:
            provider_id = await self._provider.resolve_reference(descriptor.external_ref)
        except Exception as e:
            self._cache.pop(descriptor.id, None)
            logger.warning(
                "Reference resolution failed",
                source_id=descriptor.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ResolutionError(descriptor.id, f"Could not resolve reference: {e}") from e

        self._cache[descriptor.id] = (provider_id, now)
        self._reverse[provider_id] = descriptor.id
        return provider_id

    def source_for(self, provider_id: str) -> str | None:
        """Descriptor id previously resolved to ``provider_id``."""
        return self._reverse.get(provider_id)

    def invalidate(self, source_id: str | None = None) -> None:
        """Drop one cached resolution, or all of them."""
        if source_id is None:
            self._cache.clear()
        else:
            self._cache.pop(source_id, None)
