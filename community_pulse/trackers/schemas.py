"""Per-source tracker state: growth/health history, activity counters, voice occupancy."""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from community_pulse.providers.schemas import VoiceOccupant

GROWTH_WINDOW = 30
HEALTH_WINDOW = 168  # 7 days at hourly cadence
VOICE_EVENT_WINDOW = 100

GrowthEvent = Literal["join", "leave"]
VoiceAction = Literal["join", "leave", "move"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class GrowthSample:
    timestamp: datetime
    member_count: int
    event: GrowthEvent | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "timestamp": self.timestamp.isoformat(),
            "member_count": self.member_count,
        }
        if self.event is not None:
            data["event"] = self.event
        return data


@dataclass(frozen=True)
class HealthSample:
    timestamp: datetime
    overall_score: int

    def to_dict(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp.isoformat(), "score": self.overall_score}


@dataclass
class HistoryState:
    """Sliding windows of growth and health samples for one source."""

    growth: deque[GrowthSample] = field(default_factory=lambda: deque(maxlen=GROWTH_WINDOW))
    health: deque[HealthSample] = field(default_factory=lambda: deque(maxlen=HEALTH_WINDOW))


@dataclass
class ActivityState:
    """Message activity counters for one source.

    ``active_users`` only grows until an explicit reset.
    """

    total_messages: int = 0
    active_users: set[str] = field(default_factory=set)
    channel_activity: dict[str, int] = field(default_factory=dict)
    last_reset: datetime = field(default_factory=_utcnow)

    def summary(self) -> dict[str, Any]:
        return {
            "total_messages": self.total_messages,
            "active_users": len(self.active_users),
            "channels_active": len(self.channel_activity),
            "last_reset": self.last_reset.isoformat(),
        }


@dataclass(frozen=True)
class VoiceChannelRef:
    """One side (before or after) of a voice state change."""

    channel_id: str
    name: str = ""


@dataclass(frozen=True)
class VoiceStateChange:
    """Presence of one user before and after a voice state update."""

    user_id: str
    username: str = ""
    before: VoiceChannelRef | None = None
    after: VoiceChannelRef | None = None


@dataclass(frozen=True)
class VoiceEvent:
    user_id: str
    username: str
    action: VoiceAction
    channel: str
    timestamp: datetime
    from_channel: str | None = None
    to_channel: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "username": self.username,
            "action": self.action,
            "channel": self.channel,
            "from_channel": self.from_channel,
            "to_channel": self.to_channel,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class VoiceChannelState:
    name: str
    occupants: dict[str, VoiceOccupant] = field(default_factory=dict)

    @property
    def occupant_count(self) -> int:
        return len(self.occupants)

    def to_dict(self, channel_id: str) -> dict[str, Any]:
        return {
            "channel_id": channel_id,
            "name": self.name,
            "occupant_count": self.occupant_count,
            "occupants": [o.to_dict() for o in self.occupants.values()],
        }


@dataclass
class VoiceState:
    """Current voice occupancy, peak watermark and recent events for one source."""

    active_channels: dict[str, VoiceChannelState] = field(default_factory=dict)
    peak_occupancy: int = 0
    events: deque[VoiceEvent] = field(default_factory=lambda: deque(maxlen=VOICE_EVENT_WINDOW))
    occupancy_observed_at: datetime | None = None

    @property
    def total_occupants(self) -> int:
        return sum(c.occupant_count for c in self.active_channels.values())

    @property
    def active_channel_count(self) -> int:
        return sum(1 for c in self.active_channels.values() if c.occupant_count > 0)
