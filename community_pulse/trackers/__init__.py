"""Trackers: bounded growth/health history, message activity and voice occupancy."""

from dataclasses import dataclass, field

from community_pulse.trackers.activity import ActivityTracker
from community_pulse.trackers.growth import GrowthTracker
from community_pulse.trackers.schemas import (
    GROWTH_WINDOW,
    HEALTH_WINDOW,
    VOICE_EVENT_WINDOW,
    ActivityState,
    GrowthSample,
    HealthSample,
    VoiceChannelRef,
    VoiceEvent,
    VoiceState,
    VoiceStateChange,
)
from community_pulse.trackers.voice import VoiceTracker, derive_action


@dataclass
class Trackers:
    """The three per-source trackers, owned together by the pipeline."""

    growth: GrowthTracker = field(default_factory=GrowthTracker)
    activity: ActivityTracker = field(default_factory=ActivityTracker)
    voice: VoiceTracker = field(default_factory=VoiceTracker)


__all__ = [
    "GROWTH_WINDOW",
    "HEALTH_WINDOW",
    "VOICE_EVENT_WINDOW",
    "ActivityState",
    "ActivityTracker",
    "GrowthSample",
    "GrowthTracker",
    "HealthSample",
    "Trackers",
    "VoiceChannelRef",
    "VoiceEvent",
    "VoiceState",
    "VoiceStateChange",
    "VoiceTracker",
    "derive_action",
]
