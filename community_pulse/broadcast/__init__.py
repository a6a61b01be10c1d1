"""Change broadcaster: push channel for live viewers."""

from community_pulse.broadcast.broadcaster import (
    TOPIC_ACTIVITY_UPDATED,
    TOPIC_HEARTBEAT,
    TOPIC_INITIAL_STATE,
    TOPIC_MEMBER_UPDATED,
    TOPIC_SOURCE_UPDATED,
    TOPIC_STATS_UPDATED,
    TOPIC_VOICE_UPDATED,
    ChangeBroadcaster,
    ClientConnection,
)
from community_pulse.broadcast.config import BroadcastConfig

__all__ = [
    "TOPIC_ACTIVITY_UPDATED",
    "TOPIC_HEARTBEAT",
    "TOPIC_INITIAL_STATE",
    "TOPIC_MEMBER_UPDATED",
    "TOPIC_SOURCE_UPDATED",
    "TOPIC_STATS_UPDATED",
    "TOPIC_VOICE_UPDATED",
    "BroadcastConfig",
    "ChangeBroadcaster",
    "ClientConnection",
]
