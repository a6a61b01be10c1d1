"""
Error taxonomy for the snapshot pipeline.

Per-source errors (ResolutionError, FetchError) are caught at the fetch
cycle boundary and turned into stale-plus-error records. NotFoundError
surfaces to API callers as 404. UpstreamUnavailable is reported through
the health endpoint and never stops cached data from being served.
"""


class PulseError(Exception):
    """Base exception for community-pulse errors."""


class ResolutionError(PulseError):
    """An external reference could not be turned into a provider id."""

    def __init__(self, source_id: str, message: str):
        super().__init__(message)
        self.source_id = source_id


class FetchError(PulseError):
    """Snapshot retrieval failed or timed out for one source."""

    def __init__(self, source_id: str, message: str, timed_out: bool = False):
        super().__init__(message)
        self.source_id = source_id
        self.timed_out = timed_out


class NotFoundError(PulseError):
    """A client asked for a source id that is not in the registry."""

    def __init__(self, source_id: str):
        super().__init__(f"Source {source_id!r} not found")
        self.source_id = source_id


class UpstreamUnavailable(PulseError):
    """The upstream provider is down or not configured."""
