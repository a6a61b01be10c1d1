"""Configuration for the source registry."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RegistryConfig(BaseSettings):
    """Where the registry is loaded from."""

    model_config = SettingsConfigDict(
        env_prefix="REGISTRY_",
        case_sensitive=False,
        extra="ignore",
    )

    path: str | None = Field(
        default=None,
        description="JSON file with source descriptors (default: bundled seed file)",
    )
    env_provider_ids: bool = Field(
        default=True,
        description="Allow entries to take provider_id from an environment variable via provider_id_env",
    )
