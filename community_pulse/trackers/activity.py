"""Message activity counters per source."""

from datetime import datetime, timezone

from community_pulse.trackers.schemas import ActivityState


class ActivityTracker:
    """Running message count, distinct active users and per-channel counts."""

    def __init__(self) -> None:
        self._states: dict[str, ActivityState] = {}

    def state(self, source_id: str) -> ActivityState:
        state = self._states.get(source_id)
        if state is None:
            state = self._states[source_id] = ActivityState()
        return state

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._states

    def record_message(self, source_id: str, user_id: str, channel_id: str) -> ActivityState:
        state = self.state(source_id)
        state.total_messages += 1
        state.active_users.add(user_id)
        state.channel_activity[channel_id] = state.channel_activity.get(channel_id, 0) + 1
        return state

    def reset_activity(self, source_id: str) -> ActivityState:
        state = self.state(source_id)
        state.total_messages = 0
        state.active_users.clear()
        state.channel_activity.clear()
        state.last_reset = datetime.now(timezone.utc)
        return state
