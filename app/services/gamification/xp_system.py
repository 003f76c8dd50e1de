# ============================================================================
# XP & Leveling System
# ============================================================================
from dataclasses import dataclass, asdict
from datetime import date
from typing import Dict, Optional
import logging

from sqlalchemy import case, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.models.user import User
from app.services.practice.adaptive_difficulty import DifficultyTier

logger = logging.getLogger(__name__)
settings = get_settings()

BASE_XP = 10
STREAK_BONUS_PER_ANSWER = 2
MAX_STREAK_BONUS = 20

DIFFICULTY_BONUS = {
    DifficultyTier.VERY_EASY: 0,
    DifficultyTier.EASY: 0,
    DifficultyTier.MEDIUM: 5,
    DifficultyTier.HARD: 10,
    DifficultyTier.VERY_HARD: 15,
}

# Level thresholds
LEVELS = [
    (1, 0, "Number Newbie"),
    (2, 100, "Math Explorer"),
    (3, 250, "Problem Solver"),
    (4, 500, "Equation Expert"),
    (5, 800, "Fraction Hero"),
    (6, 1200, "Algebra Ace"),
    (7, 1700, "Geometry Guru"),
    (8, 2500, "Calculus Captain"),
    (9, 3500, "Math Legend"),
    (10, 5000, "Math Wizard Master"),
]
LEVEL_THRESHOLDS = [xp for _, xp, _ in LEVELS]
MAX_LEVEL = len(LEVELS)


def compute_xp(correct: bool, streak: int, difficulty: str) -> int:
    """XP for one answer: base + capped streak bonus + tier bonus"""
    if not correct:
        return 0
    streak_bonus = min(max(streak, 0) * STREAK_BONUS_PER_ANSWER, MAX_STREAK_BONUS)
    try:
        tier_bonus = DIFFICULTY_BONUS[DifficultyTier(difficulty)]
    except ValueError:
        tier_bonus = 0
    return BASE_XP + streak_bonus + tier_bonus


def level_for_xp(total_xp: int) -> int:
    current_level = 1
    for level, xp_required, _ in LEVELS:
        if total_xp >= xp_required:
            current_level = level
        else:
            break
    return current_level


def xp_to_next_level(total_xp: int) -> int:
    level = level_for_xp(total_xp)
    if level >= MAX_LEVEL:
        return 0
    return LEVEL_THRESHOLDS[level] - total_xp


def level_progress(total_xp: int) -> float:
    """Fraction of the current level band completed, 1.0 at max level"""
    level = level_for_xp(total_xp)
    if level >= MAX_LEVEL:
        return 1.0
    floor = LEVEL_THRESHOLDS[level - 1]
    ceiling = LEVEL_THRESHOLDS[level]
    return min(max((total_xp - floor) / (ceiling - floor), 0.0), 1.0)


def level_title(level: int) -> str:
    level = min(max(level, 1), MAX_LEVEL)
    return LEVELS[level - 1][2]


def get_level_info(total_xp: int) -> Dict:
    level = level_for_xp(total_xp)
    return {
        "level": level,
        "title": level_title(level),
        "total_xp": total_xp,
        "xp_to_next_level": xp_to_next_level(total_xp),
        "progress_percent": round(level_progress(total_xp) * 100, 1),
        "is_max_level": level >= MAX_LEVEL,
    }


@dataclass
class RewardState:
    total_xp: int = 0
    level: int = 1
    daily_question_count: int = 0
    daily_goal: int = settings.DEFAULT_DAILY_GOAL
    last_active_date: Optional[date] = None

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["last_active_date"] = (
            self.last_active_date.isoformat() if self.last_active_date else None
        )
        return data


@dataclass
class RewardResult:
    xp_earned: int
    new_total_xp: int
    new_level: int
    leveled_up: bool
    daily_question_count: int
    daily_goal: int

    def to_dict(self) -> Dict:
        return asdict(self)


class XPStore:
    """Reward state persisted on the User row"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _load(self, user_id: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    @staticmethod
    def _state_of(user: User, today: date) -> RewardState:
        total_xp = user.total_xp or 0
        daily = user.daily_question_count or 0
        if user.last_active_date != today:
            daily = 0
        return RewardState(
            total_xp=total_xp,
            level=level_for_xp(total_xp),
            daily_question_count=daily,
            daily_goal=user.daily_goal or settings.DEFAULT_DAILY_GOAL,
            last_active_date=user.last_active_date,
        )

    async def get_reward_state(self, user_id: str, today: Optional[date] = None) -> RewardState:
        today = today or date.today()
        user = await self._load(user_id)
        if not user:
            return RewardState()
        return self._state_of(user, today)

    async def award_xp(
        self,
        user_id: str,
        correct: bool,
        streak: int,
        difficulty: str,
        today: Optional[date] = None,
    ) -> RewardResult:
        """Award XP for one answer and bump the daily counter"""
        today = today or date.today()
        xp = compute_xp(correct, streak, difficulty)
        before = RewardState()

        try:
            user = await self._load(user_id)
            if not user:
                logger.warning(f"XP award for unknown user {user_id}")
                return self._fallback(before)

            before = self._state_of(user, today)

            # Both counters are computed by the database from the row as it is now
            values = {
                "daily_question_count": case(
                    (User.last_active_date == today, User.daily_question_count + 1),
                    else_=1,
                ),
                "last_active_date": today,
            }
            if xp > 0:
                values["total_xp"] = User.total_xp + xp

            await self.db.execute(
                update(User)
                .where(User.id == user_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await self.db.flush()

            # Level follows the stored total, which may include concurrent awards
            await self.db.refresh(
                user, attribute_names=["total_xp", "daily_question_count", "last_active_date"]
            )
            new_total = user.total_xp or 0
            daily = user.daily_question_count or 0
            new_level = level_for_xp(new_total)
            if new_level != user.level:
                await self.db.execute(
                    update(User).where(User.id == user_id).values(level=new_level)
                )
            await self.db.commit()

        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"XP award failed for {user_id}: {e}")
            return self._fallback(before)

        if new_level > before.level:
            logger.info(f"User {user_id} reached level {new_level} ({level_title(new_level)})")

        return RewardResult(
            xp_earned=xp,
            new_total_xp=new_total,
            new_level=new_level,
            leveled_up=new_level > before.level,
            daily_question_count=daily,
            daily_goal=before.daily_goal,
        )

    @staticmethod
    def _fallback(state: RewardState) -> RewardResult:
        return RewardResult(
            xp_earned=0,
            new_total_xp=state.total_xp,
            new_level=state.level,
            leveled_up=False,
            daily_question_count=state.daily_question_count,
            daily_goal=state.daily_goal,
        )
