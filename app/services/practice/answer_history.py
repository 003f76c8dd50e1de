# ============================================================================
# Answer History
# ============================================================================
from dataclasses import dataclass
from typing import Dict, List, Optional, Union
import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import PersistenceFailure
from app.models.practice import AnswerRecord

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class AnswerEvent:
    """One scored submission; never mutated after creation"""
    raw_input: str
    normalized_value: Union[float, str]
    is_correct: bool
    time_ms: int
    question_text: str = ""
    correct_answer: Optional[Union[int, float, str]] = None
    operation: str = "addition"

    def to_dict(self) -> Dict:
        return {
            "raw_input": self.raw_input,
            "normalized_value": self.normalized_value,
            "is_correct": self.is_correct,
            "time_ms": self.time_ms,
            "question_text": self.question_text,
            "correct_answer": self.correct_answer,
            "operation": self.operation,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "AnswerEvent":
        return cls(**data)


class AnswerHistoryService:
    """Persistence sink and history source for answer events"""

    HISTORY_LIMIT = 200

    def __init__(self, db: AsyncSession):
        self.db = db

    async def save_answer_event(self, user_id: str, event: AnswerEvent, mode: str = "play") -> str:
        record = AnswerRecord(
            user_id=user_id,
            question=event.question_text,
            operation=event.operation,
            user_answer=event.raw_input,
            correct_answer=None if event.correct_answer is None else str(event.correct_answer),
            correct=event.is_correct,
            time_ms=event.time_ms,
            mode=mode,
        )
        try:
            self.db.add(record)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to save answer for {user_id}: {e}")
            raise PersistenceFailure("answer") from e
        return record.id

    async def get_history(self, user_id: str, limit: Optional[int] = None) -> List[Dict]:
        """Most recent answers, oldest first: ``{operation, correct, timestamp}``"""
        result = await self.db.execute(
            select(AnswerRecord)
            .where(AnswerRecord.user_id == user_id)
            .order_by(AnswerRecord.timestamp.desc(), AnswerRecord.id.desc())
            .limit(limit or self.HISTORY_LIMIT)
        )
        records = list(result.scalars().all())
        records.reverse()

        return [
            {
                "operation": r.operation,
                "correct": bool(r.correct),
                "timestamp": r.timestamp.isoformat() if r.timestamp else None,
            }
            for r in records
        ]
