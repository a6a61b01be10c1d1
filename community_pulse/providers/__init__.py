"""Upstream community data providers."""

from community_pulse.config.settings import Settings, get_settings
from community_pulse.providers.base import BaseProvider
from community_pulse.providers.discord_provider import DiscordProvider
from community_pulse.providers.mock_provider import MockProvider
from community_pulse.providers.schemas import (
    RawSnapshot,
    VoiceChannelSnapshot,
    VoiceOccupant,
)


def create_provider(settings: Settings | None = None) -> BaseProvider:
    """Build the provider selected by settings."""
    settings = settings or get_settings()
    if settings.provider == "discord":
        return DiscordProvider(settings=settings)
    return MockProvider()


__all__ = [
    "BaseProvider",
    "DiscordProvider",
    "MockProvider",
    "RawSnapshot",
    "VoiceChannelSnapshot",
    "VoiceOccupant",
    "create_provider",
]
