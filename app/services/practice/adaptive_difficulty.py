# ============================================================================
# Adaptive Difficulty System
# ============================================================================
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Sequence

from app.data.math_modules import get_difficulty_thresholds

class DifficultyTier(str, Enum):
    VERY_EASY = "Very Easy"
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"
    VERY_HARD = "Very Hard"

# Boundaries in the order they are tested; accuracy under a boundary picks its tier
TIER_BOUNDARIES = [
    ("very_easy", DifficultyTier.VERY_EASY),
    ("easy", DifficultyTier.EASY),
    ("medium", DifficultyTier.MEDIUM),
    ("hard", DifficultyTier.HARD),
]

TIER_ORDER: List[DifficultyTier] = list(DifficultyTier)


@dataclass(frozen=True)
class DifficultyResult:
    tier: DifficultyTier
    accuracy_pct: int
    threshold_pct: int

    def to_dict(self) -> Dict:
        return {
            "difficulty": self.tier.value,
            "accuracy": self.accuracy_pct,
            "threshold": self.threshold_pct,
        }


def _percent(value: float) -> int:
    # Half-up, so 0.625 -> 63 rather than banker's rounding
    return int(value * 100 + 0.5)


def classify(correct: int, total: int, grade: str) -> DifficultyResult:
    """Grade-aware tier for the session's running accuracy"""
    accuracy = correct / total if total > 0 else 0.0
    thresholds = get_difficulty_thresholds(grade)

    for key, tier in TIER_BOUNDARIES:
        if accuracy < thresholds[key]:
            return DifficultyResult(tier, _percent(accuracy), _percent(thresholds[key]))

    return DifficultyResult(
        DifficultyTier.VERY_HARD, _percent(accuracy), _percent(thresholds["very_hard"])
    )


def tier_rank(tier: DifficultyTier) -> int:
    return TIER_ORDER.index(DifficultyTier(tier))


class AdaptiveDifficultySystem:
    """Complexity hint for the question generator based on recent answers"""

    # Recent performance window
    RECENT_ATTEMPTS_WINDOW = 10

    # Performance thresholds
    HIGH_PERFORMANCE = 0.85
    MEDIUM_PERFORMANCE = 0.70

    def recent_accuracy(self, history: Sequence[Dict]) -> float:
        recent = list(history)[-self.RECENT_ATTEMPTS_WINDOW:]
        if not recent:
            return 0.0
        return sum(1 for h in recent if h.get("correct")) / len(recent)

    def recommended_complexity(self, history: Sequence[Dict]) -> str:
        """easy / medium / hard wording used in the generation prompt"""
        accuracy = self.recent_accuracy(history)
        if accuracy > self.HIGH_PERFORMANCE:
            return "hard"
        if accuracy > self.MEDIUM_PERFORMANCE:
            return "medium"
        return "easy"

    def adjustment_message(self, old: DifficultyTier, new: DifficultyTier) -> str:
        if old == new:
            return ""
        if tier_rank(new) > tier_rank(old):
            return f"Great progress! Moving up to {new.value} questions! 🚀"
        return f"Let's build up your confidence with {new.value} questions. 💪"
