"""
API rate limiting using slowapi.

Shared Limiter keyed by client IP with in-memory storage. Enable via
RATE_LIMIT_ENABLED=true; when disabled the decorators are pass-through.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from community_pulse.config.settings import get_settings


def create_limiter() -> Limiter:
    """Create a configured Limiter instance."""
    settings = get_settings()
    return Limiter(
        key_func=get_remote_address,
        default_limits=[settings.rate_limit_default],
        storage_uri="memory://",
        enabled=settings.rate_limit_enabled,
    )


limiter = create_limiter()
