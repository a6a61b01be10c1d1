"""Schema definitions for provider-returned community snapshots.

A RawSnapshot is the set of facts the upstream provider reports about one
community at one instant. It is ephemeral: each fetch replaces it wholesale.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class VoiceOccupant:
    """A user currently sitting in a voice channel."""

    user_id: str
    username: str = ""
    avatar_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.user_id,
            "username": self.username,
            "avatar": self.avatar_url,
        }


@dataclass(frozen=True)
class VoiceChannelSnapshot:
    """Occupancy of one voice channel at snapshot time."""

    channel_id: str
    name: str
    occupants: tuple[VoiceOccupant, ...] = ()

    @property
    def occupant_count(self) -> int:
        return len(self.occupants)


@dataclass(frozen=True)
class RawSnapshot:
    """Facts about one community at one instant.

    ``voice_channels`` is ``None`` when the provider cannot report voice
    occupancy (a Discord guild with its widget disabled). Occupancy is then tracked
    from inbound voice events instead of being rebuilt from the snapshot.
    """

    provider_id: str
    name: str
    member_count: int
    online_count: int
    channel_count: int
    voice_channel_count: int = 0
    voice_channels: tuple[VoiceChannelSnapshot, ...] | None = None
    boost_level: int = 0
    boost_count: int = 0
    created_at: datetime | None = None
    features: tuple[str, ...] = ()
    icon_url: str | None = None
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        for name in ("member_count", "online_count", "channel_count", "voice_channel_count"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValueError(f"{name} must be a non-negative integer, got {value!r}")

    @property
    def active_voice_channels(self) -> tuple[VoiceChannelSnapshot, ...]:
        if not self.voice_channels:
            return ()
        return tuple(c for c in self.voice_channels if c.occupant_count > 0)

    @property
    def total_voice_occupants(self) -> int:
        return sum(c.occupant_count for c in self.active_voice_channels)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RawSnapshot":
        """Build a snapshot from a provider payload.

        Raises:
            KeyError: A required field is missing.
            ValueError: A count is negative or not an integer.
        """
        voice = data.get("voice_channels")
        voice_channels = None
        if voice is not None:
            voice_channels = tuple(
                VoiceChannelSnapshot(
                    channel_id=str(c["channel_id"]),
                    name=c.get("name", ""),
                    occupants=tuple(
                        VoiceOccupant(
                            user_id=str(o["user_id"]),
                            username=o.get("username", ""),
                            avatar_url=o.get("avatar_url"),
                        )
                        for o in c.get("occupants", [])
                    ),
                )
                for c in voice
            )

        created_at = data.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)

        return cls(
            provider_id=str(data["provider_id"]),
            name=data.get("name", ""),
            member_count=data["member_count"],
            online_count=data["online_count"],
            channel_count=data["channel_count"],
            voice_channel_count=data.get("voice_channel_count", 0),
            voice_channels=voice_channels,
            boost_level=data.get("boost_level", 0) or 0,
            boost_count=data.get("boost_count", 0) or 0,
            created_at=created_at,
            features=tuple(data.get("features", ())),
            icon_url=data.get("icon_url"),
        )
