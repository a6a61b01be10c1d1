"""Tests for the composite health scorer."""

from datetime import datetime, timezone

import pytest

from community_pulse.providers.schemas import VoiceOccupant
from community_pulse.scoring import health
from community_pulse.scoring.schemas import HealthScore, ScoreBreakdown
from community_pulse.trackers.schemas import (
    ActivityState,
    GrowthSample,
    VoiceChannelState,
    VoiceState,
)

T0 = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _growth(*counts: int) -> list[GrowthSample]:
    return [GrowthSample(timestamp=T0, member_count=c) for c in counts]


def _voice(active_channels: int) -> VoiceState:
    state = VoiceState()
    for i in range(active_channels):
        state.active_channels[f"v{i}"] = VoiceChannelState(
            name=f"Voice {i}",
            occupants={f"u{i}": VoiceOccupant(user_id=f"u{i}")},
        )
    return state


class TestScenario:
    def test_reference_community(self, make_snapshot):
        raw = make_snapshot(member_count=1000, online_count=300, channel_count=10)

        result = health.score(
            raw,
            _growth(1000),
            ActivityState(total_messages=500),
            _voice(2),
        )

        assert result.breakdown == ScoreBreakdown(
            growth=50, activity=10, engagement=26, retention=91,
        )
        assert result.overall == 37


class TestSubScores:
    def test_growth_default_with_fewer_than_two_samples(self):
        assert health.growth_score([], 100) == 50
        assert health.growth_score(_growth(100), 100) == 50

    def test_growth_uses_last_seven_samples(self):
        # Only the last 7 samples count: 100 -> 106 gives +6
        window = _growth(0, 0, 100, 101, 102, 103, 104, 105, 106)
        assert health.growth_score(window, 1000) == pytest.approx(56.0)

    def test_growth_clamped(self):
        assert health.growth_score(_growth(100, 1000), 100) == 100
        assert health.growth_score(_growth(1000, 100), 100) == 0

    def test_activity_capped(self):
        assert health.activity_score(10_000, 100) == 100

    def test_engagement_without_channels(self):
        assert health.engagement_score(50, 100, 3, 0) == pytest.approx(30.0)

    def test_retention_constant(self):
        assert health.retention_score(1) == pytest.approx(90.909, abs=1e-3)
        assert health.retention_score(123_456) == pytest.approx(90.909, abs=1e-3)

    def test_retention_zero_members(self):
        assert health.retention_score(0) == 0


class TestEdgeCases:
    def test_zero_members_is_valid_score(self, make_snapshot):
        raw = make_snapshot(member_count=0, online_count=0, channel_count=0)

        result = health.score(raw, _growth(0, 0), ActivityState(total_messages=10), None)

        assert isinstance(result.overall, int)
        assert 0 <= result.overall <= 100
        assert result.breakdown.activity == 0
        assert result.breakdown.engagement == 0
        assert result.breakdown.retention == 0

    def test_missing_tracker_state(self, make_snapshot):
        result = health.score(make_snapshot(), [], None, None)

        assert result.breakdown.activity == 0
        assert 0 <= result.overall <= 100

    def test_scores_always_in_range(self, make_snapshot):
        raw = make_snapshot(member_count=10, online_count=10, channel_count=1)

        result = health.score(
            raw, _growth(1, 10, 10_000), ActivityState(total_messages=10_000), _voice(5),
        )

        assert result.overall <= 100
        for value in result.breakdown.to_dict().values():
            assert 0 <= value <= 100


class TestRounding:
    @pytest.mark.parametrize("value, expected", [(36.5, 37), (36.49, 36), (0.5, 1), (99.5, 100)])
    def test_half_up(self, value, expected):
        assert health.round_half_up(value) == expected

    def test_health_score_validates_range(self):
        with pytest.raises(ValueError):
            HealthScore(overall=101, breakdown=ScoreBreakdown(0, 0, 0, 0))
