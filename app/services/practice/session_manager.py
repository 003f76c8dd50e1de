# ============================================================================
# Practice Session Management Service
# ============================================================================
"""
Manages practice sessions, question flow, and answer evaluation.

A session is an immutable ``SessionState`` value. The module-level
transition functions (``start_session``, ``issue_question``,
``mark_unscorable``, ``apply_answer``, ``advance``, ``end_session``) each
return a new value, so the flow can be tested without any I/O:

    LOADING -> AWAITING_ANSWER -> FEEDBACK -> (AWAITING_ANSWER | COMPLETE)

``PracticeSessionManager`` wires the transitions to the collaborators:
question generator, answer extractor, XP store and answer history.
"""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union
import logging
import random
import time

from sqlalchemy.exc import SQLAlchemyError

from app.config import get_settings
from app.core.exceptions import InvalidInput, PersistenceFailure
from app.services.practice.adaptive_difficulty import (
    AdaptiveDifficultySystem,
    DifficultyTier,
    classify,
)
from app.services.practice.answer_extractor import (
    AnswerExtractor,
    is_string_answer_operation,
    normalize_operation,
)
from app.services.practice.answer_history import AnswerEvent
from app.services.practice.input_normalizer import (
    is_correct,
    is_valid,
    normalize,
    normalize_text,
)
from app.services.practice.operation_selector import OperationSelector

logger = logging.getLogger(__name__)
settings = get_settings()

UNSCORABLE_MESSAGE = "❌ Unable to extract answer from this question. Please try the next question."
INVALID_INPUT_MESSAGE = "❌ Please enter a valid number (e.g. 42, 0.5, or 1/2)."
CORRECT_MESSAGE = "🎉 Correct! Amazing!"


class SessionMode(str, Enum):
    PLAY = "play"
    TEST = "test"
    CHALLENGE_CREATOR = "challenge_creator"
    CHALLENGE_OPPONENT = "challenge_opponent"


class SessionPhase(str, Enum):
    LOADING = "loading"
    AWAITING_ANSWER = "awaiting_answer"
    FEEDBACK = "feedback"
    COMPLETE = "complete"


@dataclass(frozen=True)
class Question:
    text: str
    operation: str
    answer: Optional[Union[int, float, str]] = None

    def to_dict(self) -> Dict:
        return {"text": self.text, "operation": self.operation, "answer": self.answer}


@dataclass(frozen=True)
class SessionState:
    mode: SessionMode
    grade: str
    selected_modules: Tuple[str, ...] = ()
    phase: SessionPhase = SessionPhase.LOADING
    correct_count: int = 0
    total_count: int = 0
    current_streak: int = 0
    difficulty_tier: DifficultyTier = DifficultyTier.VERY_EASY
    question_index: int = 0
    missed_questions: Tuple[AnswerEvent, ...] = ()
    current_question: Optional[Question] = None
    last_event: Optional[AnswerEvent] = None
    session_xp: int = 0
    started_at: float = 0.0
    unscorable: bool = False
    feedback: str = ""
    last_xp_earned: int = 0
    leveled_up: bool = False
    session_id: str = ""
    user_id: str = ""

    def to_dict(self) -> Dict:
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "mode": self.mode.value,
            "grade": self.grade,
            "selected_modules": list(self.selected_modules),
            "phase": self.phase.value,
            "correct_count": self.correct_count,
            "total_count": self.total_count,
            "current_streak": self.current_streak,
            "difficulty_tier": self.difficulty_tier.value,
            "question_index": self.question_index,
            "missed_questions": [e.to_dict() for e in self.missed_questions],
            "current_question": self.current_question.to_dict() if self.current_question else None,
            "last_event": self.last_event.to_dict() if self.last_event else None,
            "session_xp": self.session_xp,
            "started_at": self.started_at,
            "unscorable": self.unscorable,
            "feedback": self.feedback,
            "last_xp_earned": self.last_xp_earned,
            "leveled_up": self.leveled_up,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "SessionState":
        question = data.get("current_question")
        last_event = data.get("last_event")
        return cls(
            session_id=data.get("session_id", ""),
            user_id=data.get("user_id", ""),
            mode=SessionMode(data["mode"]),
            grade=data["grade"],
            selected_modules=tuple(data.get("selected_modules") or ()),
            phase=SessionPhase(data["phase"]),
            correct_count=data.get("correct_count", 0),
            total_count=data.get("total_count", 0),
            current_streak=data.get("current_streak", 0),
            difficulty_tier=DifficultyTier(data.get("difficulty_tier", DifficultyTier.VERY_EASY)),
            question_index=data.get("question_index", 0),
            missed_questions=tuple(
                AnswerEvent.from_dict(e) for e in data.get("missed_questions") or ()
            ),
            current_question=Question(**question) if question else None,
            last_event=AnswerEvent.from_dict(last_event) if last_event else None,
            session_xp=data.get("session_xp", 0),
            started_at=data.get("started_at", 0.0),
            unscorable=data.get("unscorable", False),
            feedback=data.get("feedback", ""),
            last_xp_earned=data.get("last_xp_earned", 0),
            leveled_up=data.get("leveled_up", False),
        )


# ============================================================================
# Feedback Text
# ============================================================================
HINTS = {
    "addition": [
        "Break big numbers into tens and ones, then add each part separately.",
        "Try adding the ones digits first, then the tens.",
        "Line up the numbers by place value and add column by column.",
    ],
    "subtraction": [
        "Try counting up from the smaller number to the larger one.",
        "Subtract the ones first, then the tens.",
        "If the top digit is smaller, you may need to borrow from the next column.",
    ],
    "multiplication": [
        "Multiplication is repeated addition. For example, 4 × 3 = 4 + 4 + 4.",
        "Break one number into parts: 12 × 5 = (10 × 5) + (2 × 5).",
        "Look for patterns in your times tables to help.",
    ],
    "division": [
        "Division is the opposite of multiplication. What times the divisor gives the dividend?",
        "Try estimating first. Is the answer closer to 5 or 50?",
        "Break the dividend into friendly parts that divide evenly.",
    ],
    "fractions": [
        "To add fractions, make sure the denominators (bottom numbers) are the same first.",
        'Remember: "of" means multiply. So 1/3 of 12 = (1/3) × 12.',
        "To simplify a fraction, divide top and bottom by the same number.",
    ],
    "decimals": [
        "Line up the decimal points before adding or subtracting.",
        "When multiplying decimals, count total decimal places in both numbers.",
        "Think of decimals as money: 0.5 is like 50 cents.",
    ],
    "algebra": [
        "To solve for x, do the same operation to both sides of the equation.",
        "Work backwards: if 2x + 5 = 13, first subtract 5, then divide by 2.",
        "Replace the variable with your answer to check if both sides are equal.",
    ],
    "geometry": [
        "Area of a rectangle = length × width. Perimeter = 2 × (length + width).",
        "Area of a triangle = (base × height) ÷ 2.",
        "For circles: circumference = π × diameter, area = π × radius².",
    ],
    "statistics": [
        "Mean = sum of all values ÷ number of values.",
        "Median is the middle value when numbers are sorted in order.",
        "Probability = favorable outcomes ÷ total possible outcomes.",
    ],
    "calculus": [
        "The derivative of xⁿ is n × xⁿ⁻¹ (power rule).",
        "A derivative tells you the rate of change.",
        "For limits, try plugging the value directly into the expression first.",
    ],
    "exponents": [
        "2⁵ means 2 multiplied by itself 5 times.",
        "A square root asks: what number times itself gives this?",
        "When multiplying powers with the same base, add the exponents.",
    ],
    "logic_patterns": [
        "Look at the differences between consecutive numbers. Is there a pattern?",
        "Check if each number is multiplied by the same value (geometric pattern).",
        "Check if each number is the sum of the two before it (like Fibonacci).",
    ],
}

TIPS = {
    "addition": "Tip: Add numbers step by step. Break large numbers into tens and ones.",
    "subtraction": "Tip: Subtract by counting up from the smaller number, or break into parts.",
    "multiplication": "Tip: Multiplication is repeated addition. 12×5 = (10×5)+(2×5).",
    "division": 'Tip: Think "what number times the divisor gives the dividend?"',
    "fractions": 'Tip: Find a common denominator first. "Of" means multiply: a/b of X = (a×X)/b.',
    "decimals": "Tip: Line up decimal points for +/−. For ×, multiply as whole numbers then count decimal places.",
    "algebra": "Tip: Isolate the variable by doing the same operation to both sides.",
    "geometry": "Tip: Rectangle area = l×w, triangle = ½×b×h, circle = π×r². Perimeter = sum of all sides.",
    "statistics": "Tip: Mean = sum÷count. Median = middle value when sorted. Probability = favorable÷total.",
    "calculus": "Tip: Power rule: d/dx(xⁿ) = n·xⁿ⁻¹. For limits, try direct substitution first.",
    "exponents": "Tip: Same base? Add the exponents. Roots undo powers.",
    "logic_patterns": "Tip: Check differences between terms, ratios, or sums of previous terms.",
}
DEFAULT_TIP = "Tip: Review the question carefully and try breaking it into smaller steps."

_difficulty = AdaptiveDifficultySystem()


def tip_for(operation: str) -> str:
    return TIPS.get(normalize_operation(operation), DEFAULT_TIP)


def hint_for(operation: str, rng: Optional[random.Random] = None) -> str:
    hints = HINTS.get(normalize_operation(operation), HINTS["addition"])
    return (rng or random).choice(hints)


def answer_claim_key(session_id: str, question_index: int) -> str:
    return f"practice_session:{session_id}:answered:{question_index}"


def letter_grade(percentage: float) -> str:
    if percentage >= 90:
        return "A+"
    if percentage >= 80:
        return "A"
    if percentage >= 70:
        return "B"
    if percentage >= 60:
        return "C"
    if percentage >= 50:
        return "D"
    return "F"


# ============================================================================
# Transitions
# ============================================================================
def start_session(
    mode: Union[SessionMode, str],
    grade: str,
    selected_modules: Sequence[str] = (),
    now: Optional[float] = None,
    session_id: str = "",
    user_id: str = "",
) -> SessionState:
    return SessionState(
        mode=SessionMode(mode),
        grade=grade,
        selected_modules=tuple(selected_modules or ()),
        phase=SessionPhase.LOADING,
        started_at=time.time() if now is None else now,
        session_id=session_id,
        user_id=user_id,
    )


def issue_question(state: SessionState, question: Question) -> SessionState:
    if state.phase != SessionPhase.LOADING:
        raise ValueError(f"Cannot issue a question while {state.phase.value}")
    return replace(
        state,
        phase=SessionPhase.AWAITING_ANSWER,
        current_question=question,
        question_index=state.question_index + 1,
        unscorable=question.answer is None,
        last_event=None,
        feedback="",
        last_xp_earned=0,
        leveled_up=False,
    )


def mark_unscorable(state: SessionState) -> SessionState:
    """Close the question without scoring it"""
    return replace(
        state,
        phase=SessionPhase.FEEDBACK,
        unscorable=True,
        feedback=UNSCORABLE_MESSAGE,
        last_xp_earned=0,
        leveled_up=False,
    )


def apply_answer(state: SessionState, event: AnswerEvent) -> SessionState:
    """Count the answer, update streak and tier, and move to FEEDBACK"""
    correct = event.is_correct
    correct_count = state.correct_count + (1 if correct else 0)
    total_count = state.total_count + 1
    missed = state.missed_questions if correct else state.missed_questions + (event,)

    if correct:
        feedback = CORRECT_MESSAGE
    else:
        feedback = f"❌ Not quite. The answer is {event.correct_answer}.\n{tip_for(event.operation)}"

    tier = classify(correct_count, total_count, state.grade).tier
    change = _difficulty.adjustment_message(state.difficulty_tier, tier)
    if change:
        feedback = f"{feedback}\n{change}"

    return replace(
        state,
        phase=SessionPhase.FEEDBACK,
        correct_count=correct_count,
        total_count=total_count,
        current_streak=state.current_streak + 1 if correct else 0,
        difficulty_tier=tier,
        missed_questions=missed,
        last_event=event,
        feedback=feedback,
    )


def record_reward(state: SessionState, xp_earned: int, leveled_up: bool = False) -> SessionState:
    return replace(
        state,
        session_xp=state.session_xp + xp_earned,
        last_xp_earned=xp_earned,
        leveled_up=leveled_up,
    )


def advance(state: SessionState, test_question_count: Optional[int] = None) -> SessionState:
    """Leave FEEDBACK: back to LOADING, or COMPLETE once a test is full"""
    if state.phase == SessionPhase.COMPLETE:
        return state
    limit = test_question_count or settings.TEST_QUESTION_COUNT
    if state.mode == SessionMode.TEST and state.total_count >= limit:
        return replace(state, phase=SessionPhase.COMPLETE)
    return replace(state, phase=SessionPhase.LOADING, current_question=None, unscorable=False)


def end_session(state: SessionState) -> SessionState:
    return replace(state, phase=SessionPhase.COMPLETE)


def build_summary(state: SessionState, now: Optional[float] = None) -> Dict:
    percentage = int(state.correct_count / state.total_count * 100 + 0.5) if state.total_count else 0
    summary = {
        "score": state.correct_count,
        "total": state.total_count,
        "percentage": percentage,
        "missed_questions": [
            {
                "question": e.question_text,
                "your_answer": e.raw_input,
                "correct_answer": e.correct_answer,
                "operation": e.operation,
            }
            for e in state.missed_questions
        ],
        "session_xp": state.session_xp,
    }
    if state.mode == SessionMode.TEST:
        now = time.time() if now is None else now
        summary["letter_grade"] = letter_grade(percentage)
        summary["elapsed_seconds"] = max(int(now - state.started_at), 0)
    return summary


# ============================================================================
# Orchestrator
# ============================================================================
class PracticeSessionManager:
    """Runs sessions against the generator, XP store and answer history"""

    def __init__(
        self,
        generator,
        history_service,
        xp_store,
        extractor: Optional[AnswerExtractor] = None,
        selector: Optional[OperationSelector] = None,
        test_question_count: Optional[int] = None,
        clock: Callable[[], float] = time.time,
        claims=None
    ):
        self.generator = generator
        self.history = history_service
        self.xp_store = xp_store
        self.extractor = extractor or AnswerExtractor()
        self.selector = selector or OperationSelector()
        self.test_question_count = test_question_count or settings.TEST_QUESTION_COUNT
        self.clock = clock
        # Shared store (Redis) used to claim each question once across requests
        self.claims = claims

    async def start(
        self,
        user_id: str,
        mode: Union[SessionMode, str],
        grade: str,
        selected_modules: Sequence[str] = (),
        session_id: str = ""
    ) -> SessionState:
        state = start_session(
            mode, grade, selected_modules,
            now=self.clock(), session_id=session_id, user_id=user_id,
        )
        logger.info(f"Started {state.mode.value} session for {user_id} (grade {grade})")
        return await self.load_question(state, user_id)

    async def _recent_history(self, user_id: str) -> List[Dict]:
        try:
            return await self.history.get_history(user_id)
        except SQLAlchemyError as e:
            logger.warning(f"History unavailable for {user_id}, selecting without it: {e}")
            return []

    async def load_question(self, state: SessionState, user_id: str) -> SessionState:
        # Only play mode adapts to history
        history = await self._recent_history(user_id) if state.mode == SessionMode.PLAY else []
        operation = self.selector.select(state.mode.value, history, state.selected_modules)

        generated = await self.generator.generate(
            history, state.grade, operation, list(state.selected_modules)
        )
        text = generated["question"]
        answer = generated.get("answer")
        if answer is None:
            answer = self.extractor.extract(text, operation)
        if answer is None:
            logger.warning(f"Unscorable {operation} question: {text!r}")

        return issue_question(state, Question(text=text, operation=operation, answer=answer))

    async def submit_answer(
        self,
        state: SessionState,
        user_id: str,
        raw_input: str,
        time_ms: int = 0
    ) -> SessionState:
        """Score one submission; resubmits outside AWAITING_ANSWER are no-ops"""
        if state.phase != SessionPhase.AWAITING_ANSWER or state.current_question is None:
            return state

        question = state.current_question
        if state.unscorable or question.answer is None:
            return mark_unscorable(state)

        if is_string_answer_operation(question.operation):
            normalized = normalize_text(raw_input)
            if not normalized:
                raise InvalidInput("Please enter an answer.")
        else:
            normalized = normalize(raw_input)
            if not is_valid(normalized):
                raise InvalidInput(INVALID_INPUT_MESSAGE)

        if not await self._claim(state):
            logger.info(f"Duplicate submit ignored for session {state.session_id} question {state.question_index}")
            return state

        event = AnswerEvent(
            raw_input=(raw_input or "").strip(),
            normalized_value=normalized,
            is_correct=is_correct(question.operation, raw_input, question.answer),
            time_ms=int(time_ms or 0),
            question_text=question.text,
            correct_answer=question.answer,
            operation=question.operation,
        )
        state = apply_answer(state, event)

        reward = await self.xp_store.award_xp(
            user_id,
            correct=event.is_correct,
            streak=state.current_streak,
            difficulty=state.difficulty_tier,
        )
        state = record_reward(state, reward.xp_earned, reward.leveled_up)

        try:
            await self.history.save_answer_event(user_id, event, mode=state.mode.value)
        except (PersistenceFailure, SQLAlchemyError) as e:
            logger.error(f"Answer not saved for {user_id}, continuing locally: {e}")

        return state

    async def _claim(self, state: SessionState) -> bool:
        if self.claims is None:
            return True
        return await self.claims.claim(
            answer_claim_key(state.session_id, state.question_index),
            ttl=settings.SESSION_TTL_SECONDS,
        )

    async def next_question(self, state: SessionState, user_id: str) -> SessionState:
        if state.phase != SessionPhase.FEEDBACK:
            return state
        state = advance(state, self.test_question_count)
        if state.phase == SessionPhase.COMPLETE:
            logger.info(f"Test session for {user_id} finished: {state.correct_count}/{state.total_count}")
            return state
        return await self.load_question(state, user_id)

    def hint(self, state: SessionState) -> Optional[str]:
        if state.phase != SessionPhase.AWAITING_ANSWER or state.current_question is None:
            return None
        return hint_for(state.current_question.operation)

    def end_session(self, state: SessionState) -> Tuple[SessionState, Dict]:
        state = end_session(state)
        return state, build_summary(state, now=self.clock())
