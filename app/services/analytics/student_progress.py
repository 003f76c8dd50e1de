# ============================================================================
# Student Progress Analytics
# ============================================================================
from typing import Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.services.gamification.xp_system import XPStore, get_level_info
from app.services.practice.adaptive_difficulty import classify
from app.services.practice.answer_history import AnswerHistoryService

DEFAULT_OPERATION = "general"


def get_user_stats(history: Sequence[Dict]) -> Dict:
    """Totals, accuracy %, trailing streak and weakest operations"""
    if not history:
        return {"total_questions": 0, "accuracy": 0, "streak": 0, "weak_areas": []}

    total = len(history)
    correct = sum(1 for h in history if h.get("correct"))

    streak = 0
    for entry in reversed(history):
        if not entry.get("correct"):
            break
        streak += 1

    by_operation: Dict[str, Dict[str, int]] = {}
    for entry in history:
        op = entry.get("operation") or DEFAULT_OPERATION
        stats = by_operation.setdefault(op, {"correct": 0, "total": 0})
        stats["total"] += 1
        if entry.get("correct"):
            stats["correct"] += 1

    weak_areas: List[Dict] = sorted(
        (
            {
                "name": op,
                "accuracy": _percent(stats["correct"], stats["total"]),
                "total": stats["total"],
            }
            for op, stats in by_operation.items()
        ),
        key=lambda area: area["accuracy"],
    )

    return {
        "total_questions": total,
        "accuracy": _percent(correct, total),
        "streak": streak,
        "weak_areas": weak_areas,
    }


def _percent(part: int, whole: int) -> int:
    return int(part / whole * 100 + 0.5) if whole else 0


class StudentProgressAnalytics:
    """Analytics service for student progress"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.history = AnswerHistoryService(db)
        self.xp_store = XPStore(db)

    async def get_stats(self, user_id: str, grade: Optional[str] = None) -> Dict:
        history = await self.history.get_history(user_id)
        stats = get_user_stats(history)
        if grade:
            correct = sum(1 for h in history if h.get("correct"))
            stats["difficulty"] = classify(correct, len(history), grade).to_dict()
        return stats

    async def get_xp_overview(self, user_id: str) -> Dict:
        state = await self.xp_store.get_reward_state(user_id)
        return {
            **get_level_info(state.total_xp),
            "daily_question_count": state.daily_question_count,
            "daily_goal": state.daily_goal,
            "daily_goal_met": state.daily_question_count >= state.daily_goal,
        }
