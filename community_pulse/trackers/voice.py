"""Voice-channel occupancy per source.

Occupancy is rebuilt from the snapshot each fetch cycle when the provider
reports it, and adjusted incrementally by voice events in between. The
peak watermark only moves up.
"""

from collections.abc import Iterable
from datetime import datetime, timezone

from community_pulse.providers.schemas import VoiceChannelSnapshot, VoiceOccupant
from community_pulse.trackers.schemas import (
    VoiceAction,
    VoiceChannelRef,
    VoiceChannelState,
    VoiceEvent,
    VoiceState,
    VoiceStateChange,
)


def derive_action(
    before: VoiceChannelRef | None,
    after: VoiceChannelRef | None,
) -> VoiceAction | None:
    """Classify a voice state change.

    Returns None when the user did not change channel (mute/deafen
    toggles) or was in no channel on either side.
    """
    if before is None and after is not None:
        return "join"
    if before is not None and after is None:
        return "leave"
    if before is not None and after is not None and before.channel_id != after.channel_id:
        return "move"
    return None


class VoiceTracker:
    """Active channels, peak occupancy and a 100-entry event log per source."""

    def __init__(self) -> None:
        self._states: dict[str, VoiceState] = {}

    def state(self, source_id: str) -> VoiceState:
        state = self._states.get(source_id)
        if state is None:
            state = self._states[source_id] = VoiceState()
        return state

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._states

    def items(self) -> Iterable[tuple[str, VoiceState]]:
        return self._states.items()

    def observe_occupancy(
        self,
        source_id: str,
        channels: Iterable[VoiceChannelSnapshot],
        observed_at: datetime | None = None,
    ) -> VoiceState:
        """Replace active channels with the snapshot's view."""
        state = self.state(source_id)
        rebuilt: dict[str, VoiceChannelState] = {}
        for channel in channels:
            if channel.occupant_count == 0:
                continue
            rebuilt[channel.channel_id] = VoiceChannelState(
                name=channel.name,
                occupants={o.user_id: o for o in channel.occupants},
            )
        state.active_channels = rebuilt
        state.occupancy_observed_at = observed_at or datetime.now(timezone.utc)
        self._update_peak(state)
        return state

    def apply_voice_event(
        self,
        source_id: str,
        change: VoiceStateChange,
        timestamp: datetime | None = None,
    ) -> VoiceEvent | None:
        """Record a join/leave/move and adjust occupancy.

        Returns the logged event, or None if the change was not a channel
        transition.
        """
        action = derive_action(change.before, change.after)
        if action is None:
            return None

        state = self.state(source_id)
        if change.before is not None:
            channel = state.active_channels.get(change.before.channel_id)
            if channel is not None:
                channel.occupants.pop(change.user_id, None)
                if channel.occupant_count == 0:
                    del state.active_channels[change.before.channel_id]

        if change.after is not None:
            channel = state.active_channels.get(change.after.channel_id)
            if channel is None:
                channel = state.active_channels[change.after.channel_id] = VoiceChannelState(
                    name=change.after.name,
                )
            channel.occupants[change.user_id] = VoiceOccupant(
                user_id=change.user_id,
                username=change.username,
            )

        event = VoiceEvent(
            user_id=change.user_id,
            username=change.username,
            action=action,
            channel=(change.after or change.before).name,
            timestamp=timestamp or datetime.now(timezone.utc),
            from_channel=change.before.name if change.before else None,
            to_channel=change.after.name if change.after else None,
        )
        state.events.append(event)
        self._update_peak(state)
        return event

    @staticmethod
    def _update_peak(state: VoiceState) -> None:
        state.peak_occupancy = max(state.peak_occupancy, state.total_occupants)
