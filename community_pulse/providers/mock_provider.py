"""
Mock provider for testing and development.

Generates synthetic community snapshots that drift a little between
fetches, including voice occupancy. Useful for:
- Running the dashboard without a bot token
- Exercising the pipeline in tests (fixed snapshots, injected failures,
  artificial latency)
"""

import asyncio
import hashlib
import random
from datetime import datetime, timedelta, timezone

from community_pulse.providers.base import BaseProvider
from community_pulse.providers.schemas import (
    RawSnapshot,
    VoiceChannelSnapshot,
    VoiceOccupant,
)

SAMPLE_VOICE_CHANNELS = [
    "General Voice",
    "Gaming Lounge",
    "Roleplay Briefing",
    "Music",
    "AFK",
]

SAMPLE_USERNAMES = [
    "ardel", "kopat", "nara", "bima", "sekar",
    "dimas", "ayu", "raka", "tiara", "yoga",
]

SAMPLE_FEATURES = ["COMMUNITY", "NEWS", "INVITE_SPLASH", "ANIMATED_ICON", "BANNER"]


def _stable_seed(value: str) -> int:
    return int(hashlib.sha256(value.encode("utf-8")).hexdigest()[:12], 16)


class MockProvider(BaseProvider):
    """
    Provider that fabricates snapshots instead of calling an API.

    Args:
        snapshots: Fixed snapshots per provider id (returned as-is).
        fail_ids: Provider ids whose fetch raises.
        unresolvable: References whose resolution raises.
        delay_seconds: Artificial latency before each fetch.
        seed: Base seed for generated data.
    """

    def __init__(
        self,
        snapshots: dict[str, RawSnapshot] | None = None,
        fail_ids: set[str] | None = None,
        unresolvable: set[str] | None = None,
        delay_seconds: float = 0.0,
        seed: int = 42,
    ):
        super().__init__(failure_threshold=1_000_000, recovery_timeout=1.0)
        self.snapshots = dict(snapshots or {})
        self.fail_ids = set(fail_ids or ())
        self.unresolvable = set(unresolvable or ())
        self.delay_seconds = delay_seconds
        self._seed = seed
        self._member_counts: dict[str, int] = {}
        self.fetch_calls: list[str] = []
        self.resolve_calls: list[str] = []

    @property
    def name(self) -> str:
        return "mock"

    async def _resolve_reference(self, token: str) -> str:
        self.resolve_calls.append(token)
        if token in self.unresolvable:
            raise LookupError(f"Unknown reference {token!r}")
        return str(_stable_seed(token) % 10**18)

    async def _fetch_snapshot(self, provider_id: str) -> RawSnapshot:
        self.fetch_calls.append(provider_id)
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if provider_id in self.fail_ids:
            raise ConnectionError(f"Mock fetch failure for {provider_id}")
        if provider_id in self.snapshots:
            return self.snapshots[provider_id]
        return self._generate(provider_id)

    def _generate(self, provider_id: str) -> RawSnapshot:
        rng = random.Random(_stable_seed(provider_id) ^ self._seed ^ len(self.fetch_calls))

        base = self._member_counts.get(provider_id)
        if base is None:
            base = random.Random(_stable_seed(provider_id)).randint(150, 4000)
        member_count = max(1, base + rng.randint(-5, 12))
        self._member_counts[provider_id] = member_count

        channel_count = rng.randint(12, 60)
        voice_channel_count = min(len(SAMPLE_VOICE_CHANNELS), rng.randint(2, 5))
        voice_channels = []
        for idx in range(voice_channel_count):
            occupants = tuple(
                VoiceOccupant(user_id=f"{provider_id}-{idx}-{n}", username=name)
                for n, name in enumerate(rng.sample(SAMPLE_USERNAMES, rng.randint(0, 4)))
            )
            voice_channels.append(
                VoiceChannelSnapshot(
                    channel_id=f"{provider_id}-vc{idx}",
                    name=SAMPLE_VOICE_CHANNELS[idx],
                    occupants=occupants,
                )
            )

        return RawSnapshot(
            provider_id=provider_id,
            name=f"Mock community {provider_id[-4:]}",
            member_count=member_count,
            online_count=int(member_count * rng.uniform(0.05, 0.4)),
            channel_count=channel_count,
            voice_channel_count=voice_channel_count,
            voice_channels=tuple(voice_channels),
            boost_level=rng.randint(0, 3),
            boost_count=rng.randint(0, 30),
            created_at=datetime(2019, 1, 1, tzinfo=timezone.utc)
            + timedelta(days=_stable_seed(provider_id) % 1500),
            features=tuple(rng.sample(SAMPLE_FEATURES, rng.randint(0, 3))),
        )
