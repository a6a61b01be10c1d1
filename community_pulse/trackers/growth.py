"""Growth and health-score history per source."""

from datetime import datetime, timezone

from community_pulse.trackers.schemas import (
    GrowthEvent,
    GrowthSample,
    HealthSample,
    HistoryState,
)


class GrowthTracker:
    """Member-count samples (last 30) and health samples (last 168) per source.

    State for a source id is created on first reference and kept for the
    process lifetime.
    """

    def __init__(self) -> None:
        self._states: dict[str, HistoryState] = {}

    def state(self, source_id: str) -> HistoryState:
        state = self._states.get(source_id)
        if state is None:
            state = self._states[source_id] = HistoryState()
        return state

    def __contains__(self, source_id: object) -> bool:
        return source_id in self._states

    def record_growth(
        self,
        source_id: str,
        member_count: int,
        event: GrowthEvent | None = None,
        timestamp: datetime | None = None,
    ) -> GrowthSample:
        sample = GrowthSample(
            timestamp=timestamp or datetime.now(timezone.utc),
            member_count=member_count,
            event=event,
        )
        self.state(source_id).growth.append(sample)
        return sample

    def record_health(
        self,
        source_id: str,
        overall_score: int,
        timestamp: datetime | None = None,
    ) -> HealthSample:
        sample = HealthSample(
            timestamp=timestamp or datetime.now(timezone.utc),
            overall_score=overall_score,
        )
        self.state(source_id).health.append(sample)
        return sample

    def growth_window(self, source_id: str, last: int | None = None) -> list[GrowthSample]:
        samples = list(self.state(source_id).growth)
        return samples[-last:] if last else samples

    def health_window(self, source_id: str, last: int | None = None) -> list[HealthSample]:
        samples = list(self.state(source_id).health)
        return samples[-last:] if last else samples
