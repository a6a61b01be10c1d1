"""Read-side views shared by the REST routes and the push channel.

Everything here reads the cache and trackers without taking locks and
applies the restricted-source masking before data leaves the process.
"""

from typing import Any

from community_pulse.cache.schemas import RESTRICTED, VoiceChannelSummary
from community_pulse.cache.snapshot_cache import SnapshotCache
from community_pulse.registry.schemas import SourceDescriptor
from community_pulse.registry.service import SourceRegistry
from community_pulse.scoring.health import round_half_up
from community_pulse.trackers import Trackers
from community_pulse.trackers.schemas import VoiceState

RECENT_VOICE_EVENTS = 20


def summarize_voice(state: VoiceState) -> tuple[VoiceChannelSummary, ...]:
    """Occupied channels of a voice state, as cache-ready summaries."""
    return tuple(
        VoiceChannelSummary(
            channel_id=channel_id,
            name=channel.name,
            occupant_count=channel.occupant_count,
            occupants=tuple(o.username for o in channel.occupants.values()),
        )
        for channel_id, channel in state.active_channels.items()
        if channel.occupant_count > 0
    )


def initial_state(registry: SourceRegistry, cache: SnapshotCache) -> dict[str, Any]:
    """Full-state payload for a newly connected subscriber."""
    last_update = cache.last_update
    return {
        "sources": [s.to_dict() for s in cache.get_all()],
        "stats": aggregate_stats(registry, cache),
        "last_update": last_update.isoformat() if last_update else None,
    }


def aggregate_stats(registry: SourceRegistry, cache: SnapshotCache) -> dict[str, Any]:
    """Totals over cached sources. Restricted counts are skipped."""
    snapshots = cache.get_all()
    total_members = 0
    total_online = 0
    total_voice = 0
    scores: list[int] = []
    roles: dict[str, int] = {}
    breakdown = []

    for snap in snapshots:
        if isinstance(snap.member_count, int):
            total_members += snap.member_count
        if isinstance(snap.online_count, int):
            total_online += snap.online_count
        if isinstance(snap.total_voice_occupants, int):
            total_voice += snap.total_voice_occupants
        if snap.health_score is not None:
            scores.append(snap.health_score.overall)
        role = snap.descriptor.role or "unknown"
        roles[role] = roles.get(role, 0) + 1
        breakdown.append({
            "id": snap.source_id,
            "name": snap.descriptor.display_name,
            "member_count": snap.member_count,
            "online_count": snap.online_count,
            "health_score": snap.health_score.overall if snap.health_score else None,
            "error": snap.error,
        })

    last_update = cache.last_update
    return {
        "total_sources": len(registry),
        "total_members": total_members,
        "total_online": total_online,
        "total_voice_members": total_voice,
        "average_health": round_half_up(sum(scores) / len(scores)) if scores else 0,
        "restricted_sources": sum(1 for s in snapshots if s.is_restricted),
        "roles": roles,
        "sources": breakdown,
        "last_update": last_update.isoformat() if last_update else None,
    }


def history_view(
    descriptor: SourceDescriptor,
    trackers: Trackers,
) -> dict[str, Any]:
    """Growth and health windows plus the activity summary for one source."""
    source_id = descriptor.id
    restricted = descriptor.is_private
    growth = []
    for sample in trackers.growth.growth_window(source_id):
        view = sample.to_dict()
        if restricted:
            view["member_count"] = RESTRICTED
        growth.append(view)

    return {
        "source_id": source_id,
        "member_growth": growth,
        "health_trend": [s.to_dict() for s in trackers.growth.health_window(source_id)],
        "activity": trackers.activity.state(source_id).summary(),
    }


def voice_view(descriptor: SourceDescriptor, trackers: Trackers) -> dict[str, Any]:
    """Current occupancy, peak watermark and recent voice events for one source."""
    state = trackers.voice.state(descriptor.id)
    if descriptor.is_private:
        return {
            "source_id": descriptor.id,
            "active_channels": [],
            "total_voice_members": RESTRICTED,
            "peak_voice_users": RESTRICTED,
            "recent_events": [],
        }

    events = list(state.events)[-RECENT_VOICE_EVENTS:]
    observed_at = state.occupancy_observed_at
    return {
        "source_id": descriptor.id,
        # "events" means no snapshot has reported occupancy for this source
        "occupancy_source": "snapshot" if observed_at else "events",
        "occupancy_observed_at": observed_at.isoformat() if observed_at else None,
        "active_channels": [
            channel.to_dict(channel_id)
            for channel_id, channel in state.active_channels.items()
        ],
        "total_voice_members": state.total_occupants,
        "peak_voice_users": state.peak_occupancy,
        "recent_events": [e.to_dict() for e in events],
    }


def voice_overview(registry: SourceRegistry, trackers: Trackers) -> dict[str, Any]:
    """Voice totals across all sources with a per-source breakdown."""
    total = 0
    active = 0
    sources = []
    for descriptor in registry:
        if descriptor.id not in trackers.voice:
            continue
        state = trackers.voice.state(descriptor.id)
        if descriptor.is_private:
            sources.append({
                "id": descriptor.id,
                "name": descriptor.display_name,
                "total_voice_members": RESTRICTED,
                "active_channels": RESTRICTED,
                "peak_voice_users": RESTRICTED,
            })
            continue
        total += state.total_occupants
        active += state.active_channel_count
        sources.append({
            "id": descriptor.id,
            "name": descriptor.display_name,
            "total_voice_members": state.total_occupants,
            "active_channels": state.active_channel_count,
            "peak_voice_users": state.peak_occupancy,
        })

    return {
        "total_voice_members": total,
        "active_channels": active,
        "sources": sources,
    }
