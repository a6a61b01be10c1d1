"""Health scorer: raw snapshot + tracker state -> composite score.

Every function here is pure. Inputs are duck-typed: the snapshot needs
``member_count``, ``online_count`` and ``channel_count``; growth samples
need ``member_count``; activity needs ``total_messages``; voice needs
``active_channel_count``.

Sub-scores are clamped to [0, 100] before weighting. Any ratio whose
denominator is zero yields a sub-score of 0.
"""

import math
from collections.abc import Sequence
from typing import Any

from community_pulse.scoring.schemas import HealthScore, ScoreBreakdown

# ── Constants ────────────────────────────────────────────────

WEIGHTS: dict[str, float] = {
    "growth": 0.25,
    "activity": 0.30,
    "engagement": 0.30,
    "retention": 0.15,
}

DEFAULT_GROWTH_SCORE = 50.0
GROWTH_LOOKBACK = 7
GROWTH_SENSITIVITY = 1000.0
MESSAGES_PER_MEMBER_FACTOR = 20.0
ONLINE_WEIGHT = 0.6
VOICE_WEIGHT = 0.4
RETENTION_BASELINE = 1.1


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (36.5 -> 37)."""
    return int(math.floor(value + 0.5))


# ── Sub-scores ───────────────────────────────────────────────


def growth_score(growth_window: Sequence[Any], member_count: int) -> float:
    """Sum of consecutive member deltas over the last 7 samples."""
    if len(growth_window) < 2:
        return DEFAULT_GROWTH_SCORE
    if member_count <= 0:
        return 0.0

    recent = list(growth_window)[-GROWTH_LOOKBACK:]
    sum_delta = sum(
        curr.member_count - prev.member_count
        for prev, curr in zip(recent, recent[1:])
    )
    return _clamp(DEFAULT_GROWTH_SCORE + (sum_delta / member_count) * GROWTH_SENSITIVITY)


def activity_score(total_messages: int, member_count: int) -> float:
    if member_count <= 0:
        return 0.0
    return _clamp((total_messages / member_count) * MESSAGES_PER_MEMBER_FACTOR)


def engagement_score(
    online_count: int,
    member_count: int,
    active_voice_channels: int,
    total_channels: int,
) -> float:
    online_ratio = online_count / member_count if member_count > 0 else 0.0
    voice_ratio = active_voice_channels / total_channels if total_channels > 0 else 0.0
    return _clamp((online_ratio * ONLINE_WEIGHT + voice_ratio * VOICE_WEIGHT) * 100)


def retention_score(member_count: int) -> float:
    """Simplified retention: member_count / (member_count * 1.1).

    Evaluates to ~90.9 for any positive member count. Kept as-is so scores
    stay comparable with earlier deployments.
    """
    if member_count <= 0:
        return 0.0
    return _clamp((member_count / (member_count * RETENTION_BASELINE)) * 100)


# ── Composite ────────────────────────────────────────────────


def score(
    raw: Any,
    growth_window: Sequence[Any],
    activity: Any | None,
    voice: Any | None,
) -> HealthScore:
    """Compute the composite health score for one source.

    Args:
        raw: RawSnapshot for the current cycle.
        growth_window: Growth samples, oldest first.
        activity: ActivityState (or None when nothing was recorded).
        voice: VoiceState (or None when nothing was recorded).

    Returns:
        HealthScore with integer overall and breakdown values in [0, 100].
    """
    member_count = raw.member_count
    total_messages = activity.total_messages if activity is not None else 0
    active_voice = voice.active_channel_count if voice is not None else 0

    subs = {
        "growth": growth_score(growth_window, member_count),
        "activity": activity_score(total_messages, member_count),
        "engagement": engagement_score(
            raw.online_count, member_count, active_voice, raw.channel_count,
        ),
        "retention": retention_score(member_count),
    }
    overall = sum(subs[key] * weight for key, weight in WEIGHTS.items())

    return HealthScore(
        overall=min(100, max(0, round_half_up(overall))),
        breakdown=ScoreBreakdown(
            growth=round_half_up(subs["growth"]),
            activity=round_half_up(subs["activity"]),
            engagement=round_half_up(subs["engagement"]),
            retention=round_half_up(subs["retention"]),
        ),
    )
