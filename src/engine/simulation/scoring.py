"""ScoreEngine: five clamped axes and the weighted final rank.

Scoring:
  - Every axis starts at 50 and is clamped to [0, 100] after each delta.
  - Final score = sum(axis * weight)
      survival 0.35, judgment 0.25, preparedness 0.20,
      contribution 0.15, culture 0.05
  - Rank: >=90 S, >=75 A, >=60 B, >=40 C, else D
"""

from __future__ import annotations

from typing import Mapping

from .state import SCORE_AXES, ScoreSet

SCORE_MIN = 0
SCORE_MAX = 100

AXIS_WEIGHTS: dict[str, float] = {
    "survival": 0.35,
    "judgment": 0.25,
    "preparedness": 0.20,
    "contribution": 0.15,
    "culture": 0.05,
}

# (threshold, rank), checked top-down
RANK_THRESHOLDS: tuple[tuple[float, str], ...] = (
    (90.0, "S"),
    (75.0, "A"),
    (60.0, "B"),
    (40.0, "C"),
)


def clamp(value: int) -> int:
    return max(SCORE_MIN, min(SCORE_MAX, int(value)))


class ScoreEngine:
    """Stateless scoring rules."""

    def apply(self, scores: ScoreSet, delta: Mapping[str, int]) -> ScoreSet:
        """Add *delta* axis by axis and clamp.  Unknown axes are ignored."""
        values = scores.as_dict()
        for axis, change in delta.items():
            if axis in values:
                values[axis] = clamp(values[axis] + int(change))
        return ScoreSet(**{axis: clamp(values[axis]) for axis in SCORE_AXES})

    def final_score(self, scores: ScoreSet) -> float:
        total = sum(getattr(scores, axis) * weight for axis, weight in AXIS_WEIGHTS.items())
        return round(total, 2)

    def rank(self, total: float) -> str:
        for threshold, rank in RANK_THRESHOLDS:
            if total >= threshold:
                return rank
        return "D"
