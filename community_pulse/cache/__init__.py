"""Snapshot cache."""

from community_pulse.cache.schemas import RESTRICTED, EnrichedSnapshot, VoiceChannelSummary
from community_pulse.cache.snapshot_cache import SnapshotCache

__all__ = ["RESTRICTED", "EnrichedSnapshot", "SnapshotCache", "VoiceChannelSummary"]
