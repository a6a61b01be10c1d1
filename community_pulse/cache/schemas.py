"""Schema for the cache value: one enriched snapshot per source.

Snapshots are frozen. An update builds a complete new value and swaps it
into the cache in one assignment.

Private sources never expose raw counts: the count properties and
``to_dict()`` return the ``RESTRICTED`` marker instead of numbers.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

from community_pulse.providers.schemas import RawSnapshot
from community_pulse.registry.schemas import SourceDescriptor
from community_pulse.scoring.schemas import HealthScore
from community_pulse.trackers.schemas import GrowthSample, HealthSample

RESTRICTED = "restricted"

GROWTH_TREND_LENGTH = 7
HEALTH_TREND_LENGTH = 24

Count = int | str


@dataclass(frozen=True)
class VoiceChannelSummary:
    channel_id: str
    name: str
    occupant_count: int
    occupants: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel_id": self.channel_id,
            "name": self.name,
            "member_count": self.occupant_count,
            "members": list(self.occupants),
        }


@dataclass(frozen=True)
class EnrichedSnapshot:
    """Latest known state of one source.

    Attributes:
        descriptor: Registry entry the snapshot belongs to.
        raw: Provider snapshot, or None when no fetch has succeeded yet
            (minimal error record) or the source was short-circuited.
        health_score: Score from the last successful cycle.
        growth_trend: Most recent growth samples (up to 7).
        health_trend: Most recent health samples (up to 24).
        voice_channels: Occupied voice channels at scoring time.
        last_fetched: When the current data was fetched.
        error: Set when the latest cycle failed and stale data is served.
        last_error_at: When ``error`` was recorded.
    """

    descriptor: SourceDescriptor
    raw: RawSnapshot | None = None
    health_score: HealthScore | None = None
    growth_trend: tuple[GrowthSample, ...] = ()
    health_trend: tuple[HealthSample, ...] = ()
    voice_channels: tuple[VoiceChannelSummary, ...] = ()
    peak_voice_occupancy: int = 0
    last_fetched: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    error: str | None = None
    last_error_at: datetime | None = None

    @property
    def source_id(self) -> str:
        return self.descriptor.id

    @property
    def is_restricted(self) -> bool:
        return self.descriptor.is_private

    def _count(self, value: int | None) -> Count | None:
        if self.is_restricted:
            return RESTRICTED
        return value

    @property
    def member_count(self) -> Count | None:
        return self._count(self.raw.member_count if self.raw else None)

    @property
    def online_count(self) -> Count | None:
        return self._count(self.raw.online_count if self.raw else None)

    @property
    def channel_count(self) -> Count | None:
        return self._count(self.raw.channel_count if self.raw else None)

    @property
    def total_voice_occupants(self) -> Count:
        return self._count(sum(c.occupant_count for c in self.voice_channels))

    def with_error(self, message: str, at: datetime | None = None) -> "EnrichedSnapshot":
        """Same data, annotated with a failed cycle."""
        return replace(
            self,
            error=message,
            last_error_at=at or datetime.now(timezone.utc),
        )

    def to_dict(self) -> dict[str, Any]:
        data = self.descriptor.to_dict()
        raw = self.raw
        restricted = self.is_restricted

        data.update({
            "member_count": self.member_count,
            "online_count": self.online_count,
            "channel_count": self.channel_count,
            "voice_channels": self._count(raw.voice_channel_count if raw else None),
            "active_voice_channels": self._count(len(self.voice_channels)),
            "total_voice_members": self.total_voice_occupants,
            "voice_data": [] if restricted else [c.to_dict() for c in self.voice_channels],
            "peak_voice_users": self._count(self.peak_voice_occupancy),
            "icon": raw.icon_url if raw else None,
            "boost_level": raw.boost_level if raw else None,
            "boost_count": raw.boost_count if raw else None,
            "created_at": raw.created_at.isoformat() if raw and raw.created_at else None,
            "features": list(raw.features) if raw else [],
            "health_score": self.health_score.to_dict() if self.health_score else None,
            "analytics": {
                "member_growth": [
                    _growth_view(s, restricted) for s in self.growth_trend
                ],
                "health_trend": [s.to_dict() for s in self.health_trend],
            },
            "last_fetched": self.last_fetched.isoformat(),
        })
        if self.error is not None:
            data["error"] = self.error
            data["last_error_at"] = self.last_error_at.isoformat() if self.last_error_at else None
        return data


def _growth_view(sample: GrowthSample, restricted: bool) -> dict[str, Any]:
    view = sample.to_dict()
    if restricted:
        view["member_count"] = RESTRICTED
    return view
