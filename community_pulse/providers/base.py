"""
Base provider interface for upstream community data.

Each provider implements two capabilities:
- ``_resolve_reference(token)``: turn an external reference (invite code,
  vanity URL) into a stable provider id
- ``_fetch_snapshot(provider_id)``: return a RawSnapshot for one community

The base class routes both through a circuit breaker so that a dead
upstream flips the provider to ``connected = False`` and fails fast with
UpstreamUnavailable instead of stacking timeouts.
"""

import logging
from abc import ABC, abstractmethod

from community_pulse.errors import UpstreamUnavailable
from community_pulse.providers.circuit_breaker import CircuitOpenError, UpstreamBreaker
from community_pulse.providers.http_client import HTTPClientError
from community_pulse.providers.schemas import RawSnapshot

logger = logging.getLogger(__name__)


def _counts_as_upstream_failure(exc: BaseException) -> bool:
    # A 404 for one bad invite says nothing about upstream health.
    if isinstance(exc, HTTPClientError) and exc.is_client_error:
        return False
    return True


class BaseProvider(ABC):
    """
    Abstract base class for community data providers.

    Subclasses must implement:
        - name: Short provider name for logs and metrics
        - _resolve_reference(): external reference -> provider id
        - _fetch_snapshot(): provider id -> RawSnapshot

    Optional lifecycle hooks ``start()`` / ``close()`` open and release
    network resources.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
    ):
        self._breaker = UpstreamBreaker(
            name=self.name,
            failure_threshold=failure_threshold,
            recovery_timeout=recovery_timeout,
            is_failure=_counts_as_upstream_failure,
        )

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name."""

    @property
    def configured(self) -> bool:
        """Whether the provider has what it needs to reach upstream."""
        return True

    @property
    def connected(self) -> bool:
        """Upstream connection status as seen by the circuit breaker."""
        return self.configured and not self._breaker.is_open

    @property
    def last_error(self) -> str | None:
        """Most recent upstream failure seen by the breaker."""
        return self._breaker.last_error

    async def start(self) -> None:
        """Open network resources."""

    async def close(self) -> None:
        """Release network resources."""

    async def resolve_reference(self, token: str) -> str:
        """
        Resolve an external reference to a provider id.

        Raises:
            UpstreamUnavailable: Provider not configured or circuit open.
            Exception: Any provider-specific failure.
        """
        self._ensure_configured()
        try:
            return await self._breaker.call(self._resolve_reference, token)
        except CircuitOpenError as e:
            raise UpstreamUnavailable(str(e)) from e

    async def fetch_snapshot(self, provider_id: str) -> RawSnapshot:
        """
        Fetch a raw snapshot for one community.

        Raises:
            UpstreamUnavailable: Provider not configured or circuit open.
            Exception: Any provider-specific failure.
        """
        self._ensure_configured()
        try:
            return await self._breaker.call(self._fetch_snapshot, provider_id)
        except CircuitOpenError as e:
            raise UpstreamUnavailable(str(e)) from e

    def _ensure_configured(self) -> None:
        if not self.configured:
            raise UpstreamUnavailable(f"Provider {self.name} is not configured")

    @abstractmethod
    async def _resolve_reference(self, token: str) -> str:
        """Provider-specific reference lookup."""

    @abstractmethod
    async def _fetch_snapshot(self, provider_id: str) -> RawSnapshot:
        """Provider-specific snapshot retrieval."""
