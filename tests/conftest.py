"""Pytest fixtures for community-pulse tests."""

from datetime import datetime, timezone
from typing import Callable
from unittest.mock import AsyncMock

import pytest

from community_pulse.broadcast.broadcaster import ChangeBroadcaster
from community_pulse.cache.snapshot_cache import SnapshotCache
from community_pulse.config.settings import Settings
from community_pulse.pipeline.cycle import RefreshPipeline
from community_pulse.providers.mock_provider import MockProvider
from community_pulse.providers.schemas import (
    RawSnapshot,
    VoiceChannelSnapshot,
    VoiceOccupant,
)
from community_pulse.registry.schemas import SourceDescriptor
from community_pulse.registry.service import SourceRegistry
from community_pulse.resolver.resolver import SourceResolver
from community_pulse.trackers import Trackers


@pytest.fixture
def test_settings() -> Settings:
    """Settings configured for testing."""
    return Settings(
        environment="development",
        log_level="DEBUG",
        provider="mock",
        poll_interval_seconds=3600,
        fetch_timeout_seconds=2.0,
        resolver_cache_ttl_seconds=60,
        refresh_on_membership_change=False,
        request_timeout_seconds=0,
    )


@pytest.fixture
def public_source() -> SourceDescriptor:
    return SourceDescriptor(
        id="ALPHA",
        display_name="Alpha Guild",
        external_ref="https://discord.gg/alpha",
        role="Owner",
        category="Gaming",
    )


@pytest.fixture
def second_source() -> SourceDescriptor:
    return SourceDescriptor(
        id="BRAVO",
        display_name="Bravo Roleplay",
        external_ref="https://discord.gg/bravo",
        role="Staff",
        category="Roleplay",
    )


@pytest.fixture
def private_source() -> SourceDescriptor:
    return SourceDescriptor(
        id="SECRET",
        display_name="Secret Whitelist",
        provider_id="900000000000000001",
        visibility="private",
        role="Admin",
    )


@pytest.fixture
def unreferenced_private_source() -> SourceDescriptor:
    return SourceDescriptor(
        id="HIDDEN",
        display_name="Hidden Server",
        visibility="private",
        role="Staff",
    )


@pytest.fixture
def registry(
    public_source: SourceDescriptor,
    second_source: SourceDescriptor,
    private_source: SourceDescriptor,
) -> SourceRegistry:
    return SourceRegistry([public_source, second_source, private_source])


@pytest.fixture
def make_snapshot() -> Callable[..., RawSnapshot]:
    """Factory for RawSnapshot with sensible defaults."""

    def _make(
        provider_id: str = "111",
        member_count: int = 1000,
        online_count: int = 300,
        channel_count: int = 10,
        voice: dict[str, list[str]] | None = None,
        **kwargs,
    ) -> RawSnapshot:
        voice_channels = None
        if voice is not None:
            voice_channels = tuple(
                VoiceChannelSnapshot(
                    channel_id=channel_id,
                    name=f"Voice {channel_id}",
                    occupants=tuple(
                        VoiceOccupant(user_id=user, username=f"user-{user}")
                        for user in users
                    ),
                )
                for channel_id, users in voice.items()
            )
        return RawSnapshot(
            provider_id=provider_id,
            name=kwargs.pop("name", f"Guild {provider_id}"),
            member_count=member_count,
            online_count=online_count,
            channel_count=channel_count,
            voice_channel_count=kwargs.pop(
                "voice_channel_count", len(voice_channels) if voice_channels else 0
            ),
            voice_channels=voice_channels,
            fetched_at=kwargs.pop(
                "fetched_at", datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
            ),
            **kwargs,
        )

    return _make


def mock_ws() -> AsyncMock:
    """Mock WebSocket recording every text frame."""
    ws = AsyncMock()
    ws.send_text = AsyncMock()
    return ws


@pytest.fixture
def ws_factory() -> Callable[[], AsyncMock]:
    return mock_ws


# Pipeline wiring: ALPHA/BRAVO public, SECRET private with an id, HIDDEN
# private with no reference at all.

@pytest.fixture
def pipeline_registry() -> SourceRegistry:
    return SourceRegistry([
        SourceDescriptor(id="ALPHA", display_name="Alpha", provider_id="1", role="Owner"),
        SourceDescriptor(id="BRAVO", display_name="Bravo", provider_id="2", role="Staff"),
        SourceDescriptor(
            id="SECRET", display_name="Secret", provider_id="3", visibility="private", role="Admin",
        ),
        SourceDescriptor(id="HIDDEN", display_name="Hidden", visibility="private", role="Staff"),
    ])


@pytest.fixture
def provider(make_snapshot) -> MockProvider:
    return MockProvider(snapshots={
        "1": make_snapshot(provider_id="1", voice={"v1": ["a", "b"], "v2": ["c"], "v3": []}),
        "2": make_snapshot(provider_id="2", member_count=200, online_count=50),
        "3": make_snapshot(provider_id="3", member_count=50, online_count=5),
    })


@pytest.fixture
def pipeline(pipeline_registry, provider) -> RefreshPipeline:
    return RefreshPipeline(
        registry=pipeline_registry,
        provider=provider,
        resolver=SourceResolver(provider),
        cache=SnapshotCache(order=pipeline_registry.ids),
        trackers=Trackers(),
        broadcaster=ChangeBroadcaster(),
        fetch_timeout=1.0,
    )
