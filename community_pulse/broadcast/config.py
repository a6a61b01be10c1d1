"""Push channel configuration.

All settings can be overridden via ``BROADCAST_*`` environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BroadcastConfig(BaseSettings):
    """Limits and timings for WebSocket subscribers."""

    model_config = SettingsConfigDict(
        env_prefix="BROADCAST_",
        case_sensitive=False,
        extra="ignore",
    )

    max_connections: int = Field(
        default=100,
        ge=1,
        description="Maximum concurrent WebSocket subscribers",
    )
    heartbeat_interval: int = Field(
        default=30,
        ge=1,
        description="Seconds between heartbeat messages",
    )
    send_timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="A subscriber that cannot accept a message within this time is dropped",
    )
