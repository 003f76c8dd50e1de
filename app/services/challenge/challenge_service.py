# ============================================================================
# Challenge Service
# ============================================================================
"""
Two-player challenges sharing one fixed question set.

Lifecycle: ``waiting`` (created, join code handed out) -> ``active``
(opponent joined) -> ``completed`` (both answer lists full). Each player
only appends to their own answer list. Completion is decided on the row
re-read under ``SELECT ... FOR UPDATE`` so neither side can miss the
other's final answer.

Every mutation publishes the challenge id on ``challenge:{id}``;
``subscribe`` turns those notifications into fresh challenge snapshots.
"""
import logging
import random
import time
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, List, Optional, Sequence

from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.core.exceptions import (
    ChallengeJoinRejected,
    ChallengeNotFound,
    ChallengeSubmitRejected,
    PersistenceFailure,
)
from app.core.redis import RedisCache
from app.models.challenge import Challenge
from app.services.practice.answer_extractor import extract_answer, is_string_answer_operation
from app.services.practice.answer_history import AnswerEvent, AnswerHistoryService
from app.services.practice.input_normalizer import answers_match, normalize, normalize_text
from app.services.practice.operation_selector import OperationSelector
from app.services.practice.question_generator import QuestionGenerator
from app.services.practice.session_manager import UNSCORABLE_MESSAGE

logger = logging.getLogger(__name__)
settings = get_settings()

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"  # no I/O/0/1
CODE_LENGTH = 6

STATUS_WAITING = "waiting"
STATUS_ACTIVE = "active"
STATUS_COMPLETED = "completed"


def generate_code(rng: Optional[random.Random] = None) -> str:
    rng = rng or random
    return "".join(rng.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def channel_for(challenge_id: str) -> str:
    return f"challenge:{challenge_id}"


def is_scorable(question: Dict) -> bool:
    return question.get("answer") not in (None, "")


def serialize(challenge: Challenge) -> Dict:
    def ts(value: Optional[datetime]) -> Optional[str]:
        return value.isoformat() if value else None

    return {
        "id": challenge.id,
        "code": challenge.code,
        "creator_id": challenge.creator_id,
        "creator_name": challenge.creator_name,
        "opponent_id": challenge.opponent_id,
        "opponent_name": challenge.opponent_name,
        "grade": challenge.grade,
        "modules": list(challenge.modules or []),
        "questions": list(challenge.questions or []),
        "creator_answers": list(challenge.creator_answers or []),
        "opponent_answers": list(challenge.opponent_answers or []),
        "status": challenge.status,
        "created_at": ts(challenge.created_at),
        "started_at": ts(challenge.started_at),
        "completed_at": ts(challenge.completed_at),
    }


class ChallengeService:
    """Create, join, answer and watch challenges"""

    def __init__(
        self,
        db: AsyncSession,
        cache: Optional[RedisCache] = None,
        generator: Optional[QuestionGenerator] = None,
        selector: Optional[OperationSelector] = None,
        question_count: Optional[int] = None
    ):
        self.db = db
        self.cache = cache
        self.generator = generator
        self.selector = selector or OperationSelector()
        self.question_count = question_count or settings.CHALLENGE_QUESTION_COUNT

    # ------------------------------------------------------------------
    # Questions
    # ------------------------------------------------------------------
    async def build_questions(self, grade: str, modules: Sequence[str]) -> List[Dict]:
        """Materialise the shared question set once, answers as strings"""
        generator = self.generator or QuestionGenerator()
        operations = self.selector.available_operations(modules)
        questions = []
        for i in range(self.question_count):
            operation = self.selector.random_operation(operations)
            try:
                generated = await generator.generate([], grade, operation, modules)
                answer = generated.get("answer")
                if answer is None:
                    answer = extract_answer(generated["question"], operation)
                questions.append({
                    "question": generated["question"],
                    # None marks a question nobody can be scored on
                    "answer": None if answer is None else str(answer),
                    "operation": operation,
                })
            except Exception as e:
                logger.warning(f"Challenge question {i + 1} generation failed: {e}")
                questions.append({
                    "question": f"What is {i + 2} + {i + 3}?",
                    "answer": str(2 * i + 5),
                    "operation": "addition",
                })
        return questions

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def create(
        self,
        user_id: str,
        user_name: Optional[str],
        grade: str,
        modules: Sequence[str]
    ) -> Dict:
        code = generate_code()
        challenge = Challenge(
            id=f"challenge_{code}_{int(time.time() * 1000)}",
            code=code,
            creator_id=user_id,
            creator_name=user_name,
            grade=grade,
            modules=list(modules),
            questions=await self.build_questions(grade, modules),
            creator_answers=[],
            opponent_answers=[],
            status=STATUS_WAITING,
        )
        self.db.add(challenge)
        await self.db.commit()
        await self.db.refresh(challenge)

        logger.info(f"Challenge {challenge.id} created by {user_id}")
        return serialize(challenge)

    async def join(self, code: str, user_id: str, user_name: Optional[str]) -> Dict:
        result = await self.db.execute(
            select(Challenge)
            .where(Challenge.code == code.strip().upper())
            .where(Challenge.status == STATUS_WAITING)
            .with_for_update()
        )
        challenge = result.scalars().first()

        if not challenge or challenge.opponent_id:
            await self.db.rollback()
            raise ChallengeJoinRejected()
        if challenge.creator_id == user_id:
            await self.db.rollback()
            raise ChallengeJoinRejected("You can't join your own challenge!")

        challenge.opponent_id = user_id
        challenge.opponent_name = user_name
        challenge.status = STATUS_ACTIVE
        challenge.started_at = datetime.now(timezone.utc)
        await self.db.commit()
        await self.db.refresh(challenge)

        logger.info(f"{user_id} joined challenge {challenge.id}")
        await self._publish(challenge.id)
        return serialize(challenge)

    async def _load(self, challenge_id: str, for_update: bool = False) -> Optional[Challenge]:
        query = (
            select(Challenge)
            .where(Challenge.id == challenge_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get(self, challenge_id: str) -> Optional[Dict]:
        challenge = await self._load(challenge_id)
        return serialize(challenge) if challenge else None

    async def get_by_code(self, code: str) -> Optional[Dict]:
        result = await self.db.execute(
            select(Challenge)
            .where(Challenge.code == code.strip().upper())
            .order_by(Challenge.created_at.desc())
        )
        challenge = result.scalars().first()
        return serialize(challenge) if challenge else None

    async def submit_answer(
        self,
        challenge_id: str,
        user_id: str,
        answer: str,
        time_ms: int = 0
    ) -> Dict:
        """Score and append the caller's answer to their own list"""
        challenge = await self._load(challenge_id, for_update=True)
        if not challenge:
            raise ChallengeNotFound(challenge_id)

        if user_id == challenge.creator_id:
            field, other_field, mode = "creator_answers", "opponent_answers", "challenge_creator"
        elif user_id == challenge.opponent_id:
            field, other_field, mode = "opponent_answers", "creator_answers", "challenge_opponent"
        else:
            await self.db.rollback()
            raise ChallengeSubmitRejected("You are not a player in this challenge.")

        if challenge.status != STATUS_ACTIVE:
            await self.db.rollback()
            raise ChallengeSubmitRejected(f"Challenge is {challenge.status}, not active.")

        questions = challenge.questions or []
        own = list(getattr(challenge, field) or [])
        if len(own) >= len(questions):
            await self.db.rollback()
            raise ChallengeSubmitRejected()

        question = questions[len(own)]
        scorable = is_scorable(question)
        entry = {
            "answer": (answer or "").strip(),
            "correct": answers_match(answer, question.get("answer")) if scorable else None,
            "time_ms": int(time_ms or 0),
        }
        own.append(entry)
        # New list so the JSON column is flagged dirty
        setattr(challenge, field, own)

        other = getattr(challenge, other_field) or []
        if len(own) >= len(questions) and len(other) >= len(questions):
            challenge.status = STATUS_COMPLETED
            challenge.completed_at = datetime.now(timezone.utc)

        await self.db.commit()
        await self.db.refresh(challenge)

        if challenge.status == STATUS_COMPLETED:
            logger.info(f"Challenge {challenge.id} completed")
        await self._publish(challenge.id)
        if scorable:
            await self._record(user_id, question, entry, mode)

        return {
            **entry,
            "correct_answer": question.get("answer"),
            "question_index": len(own) - 1,
            "status": challenge.status,
            "feedback": None if scorable else UNSCORABLE_MESSAGE,
        }

    async def _record(self, user_id: str, question: Dict, entry: Dict, mode: str) -> None:
        """Challenge answers count toward the learner's history and stats"""
        operation = question.get("operation") or "addition"
        raw = entry["answer"]
        event = AnswerEvent(
            raw_input=raw,
            normalized_value=(
                normalize_text(raw) if is_string_answer_operation(operation) else normalize(raw)
            ),
            is_correct=entry["correct"],
            time_ms=entry["time_ms"],
            question_text=question.get("question", ""),
            correct_answer=question.get("answer"),
            operation=operation,
        )
        try:
            await AnswerHistoryService(self.db).save_answer_event(user_id, event, mode=mode)
        except PersistenceFailure as e:
            logger.warning(f"Challenge answer not added to history for {user_id}: {e}")

    # ------------------------------------------------------------------
    # Live updates
    # ------------------------------------------------------------------
    async def _publish(self, challenge_id: str) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.publish(channel_for(challenge_id), challenge_id)
        except RedisError as e:
            logger.warning(f"Could not publish update for {challenge_id}: {e}")

    async def subscribe(self, challenge_id: str) -> AsyncIterator[Dict]:
        """Yield a fresh snapshot for every published update"""
        if self.cache is None:
            return

        pubsub = self.cache.pubsub()
        await pubsub.subscribe(channel_for(challenge_id))
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                snapshot = await self.get(challenge_id)
                if snapshot is None:
                    break
                yield snapshot
                if snapshot["status"] == STATUS_COMPLETED:
                    break
        finally:
            await pubsub.unsubscribe(channel_for(challenge_id))
            await pubsub.aclose()
