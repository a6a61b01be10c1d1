"""Health scoring."""

from community_pulse.scoring.health import score
from community_pulse.scoring.schemas import HealthScore, ScoreBreakdown

__all__ = ["HealthScore", "ScoreBreakdown", "score"]
