"""Schema for composite health scores."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ScoreBreakdown:
    growth: int
    activity: int
    engagement: int
    retention: int

    def to_dict(self) -> dict[str, int]:
        return {
            "growth": self.growth,
            "activity": self.activity,
            "engagement": self.engagement,
            "retention": self.retention,
        }


@dataclass(frozen=True)
class HealthScore:
    """Composite 0-100 health metric with its four sub-scores."""

    overall: int
    breakdown: ScoreBreakdown

    def __post_init__(self) -> None:
        if not 0 <= self.overall <= 100:
            raise ValueError(f"overall must be within [0, 100], got {self.overall}")

    def to_dict(self) -> dict[str, Any]:
        return {"overall": self.overall, "breakdown": self.breakdown.to_dict()}
