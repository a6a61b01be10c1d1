"""Application settings using Pydantic Settings for environment-based configuration."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the community-pulse application.

    All settings can be overridden via environment variables.
    Prefix is not used to allow standard env var names (e.g., DISCORD_BOT_TOKEN).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    debug: bool = False

    # Polling
    poll_interval_seconds: int = Field(default=120, ge=1)
    fetch_timeout_seconds: float = Field(default=15.0, gt=0.0, le=300.0)
    resolver_cache_ttl_seconds: int = Field(
        default=120,
        ge=0,
        description="TTL for resolved references (capped at the poll interval, 0 = no caching)",
    )
    refresh_on_membership_change: bool = True

    # Upstream provider
    provider: Literal["discord", "mock"] = "mock"
    discord_bot_token: str | None = None
    discord_api_base: str = "https://discord.com/api/v10"

    # HTTP retry configuration
    max_http_retries: int = Field(default=3, ge=0, le=10)
    max_backoff_seconds: float = Field(default=30.0, ge=1.0, le=300.0)

    # Upstream circuit breaker
    upstream_failure_threshold: int = Field(default=5, ge=1)
    upstream_recovery_timeout: float = Field(default=60.0, ge=1.0)

    # API server
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    cors_origins: str = "*"
    cors_allow_credentials: bool = False
    request_timeout_seconds: float = Field(
        default=30.0,
        ge=0.0,
        description="Per-request timeout (0 disables the middleware)",
    )

    # Rate limiting (opt-in, in-memory storage)
    rate_limit_enabled: bool = False
    rate_limit_default: str = "120/minute"
    rate_limit_events: str = "600/minute"

    # WebSocket push channel
    ws_updates_enabled: bool = True

    # Observability
    metrics_port: int = 8000
    tracing_enabled: bool = False
    otel_exporter_otlp_endpoint: str | None = None
    otel_service_name: str = "community-pulse"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def discord_configured(self) -> bool:
        """Check if the Discord provider has credentials."""
        return self.discord_bot_token is not None

    @property
    def effective_resolver_ttl(self) -> int:
        """Resolver TTL, never longer than one fetch interval."""
        return min(self.resolver_cache_ttl_seconds, self.poll_interval_seconds)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.
    Clear cache with get_settings.cache_clear() if needed.
    """
    return Settings()
