# ============================================================================
# Practice Session Endpoints
# ============================================================================
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Optional
import uuid

from app.config import get_settings
from app.core.database import get_db
from app.core.exceptions import SessionNotFound
from app.core.redis import RedisCache
from app.api.deps import get_cache, get_current_user, get_question_generator
from app.models.user import User
from app.schemas.practice import SessionResponse, StartSessionRequest, SubmitAnswerRequest
from app.services.gamification.xp_system import XPStore
from app.services.practice.answer_history import AnswerHistoryService
from app.services.practice.question_generator import QuestionGenerator
from app.services.practice.session_manager import (
    PracticeSessionManager,
    SessionPhase,
    SessionState,
)

router = APIRouter(prefix="/practice", tags=["practice"])
settings = get_settings()


def _session_key(session_id: str) -> str:
    return f"practice_session:{session_id}"


async def _load_state(cache: RedisCache, session_id: str, user_id: str) -> SessionState:
    data = await cache.get_json(_session_key(session_id))
    if not data or data.get("user_id") != user_id:
        raise SessionNotFound(session_id)
    return SessionState.from_dict(data)


async def _save_state(cache: RedisCache, state: SessionState) -> None:
    await cache.set_json(_session_key(state.session_id), state.to_dict(), ttl=settings.SESSION_TTL_SECONDS)


def _manager(db: AsyncSession, generator: QuestionGenerator, cache: RedisCache) -> PracticeSessionManager:
    return PracticeSessionManager(
        generator=generator,
        history_service=AnswerHistoryService(db),
        xp_store=XPStore(db),
        claims=cache,
    )


def _render(state: SessionState, summary: Optional[Dict] = None) -> Dict:
    question = state.current_question
    event = state.last_event
    response = {
        "session_id": state.session_id,
        "mode": state.mode.value,
        "phase": state.phase.value,
        "grade": state.grade,
        "question": None,
        "correct_count": state.correct_count,
        "total_count": state.total_count,
        "current_streak": state.current_streak,
        "difficulty": state.difficulty_tier.value,
        "session_xp": state.session_xp,
        "feedback": state.feedback,
        "is_correct": event.is_correct if event and state.phase == SessionPhase.FEEDBACK else None,
        "correct_answer": None,
        "xp_earned": state.last_xp_earned,
        "leveled_up": state.leveled_up,
        "summary": summary,
    }
    if question and state.phase != SessionPhase.COMPLETE:
        response["question"] = {
            "text": question.text,
            "operation": question.operation,
            "index": state.question_index,
            "unscorable": state.unscorable,
        }
        # Answer is only revealed once the question has been answered
        if state.phase == SessionPhase.FEEDBACK:
            response["correct_answer"] = question.answer
    return response


@router.post("/start", response_model=SessionResponse)
async def start_practice_session(
    request: StartSessionRequest,
    user: User = Depends(get_current_user),
    generator: QuestionGenerator = Depends(get_question_generator),
    cache: RedisCache = Depends(get_cache),
    db: AsyncSession = Depends(get_db)
):
    """Start a new play or test session and load the first question"""
    grade = request.grade or user.grade
    modules = request.selected_modules if request.selected_modules is not None else (user.selected_modules or [])

    # Remember the learner's latest choices
    if grade != user.grade or modules != (user.selected_modules or []):
        user.grade = grade
        user.selected_modules = list(modules)
        await db.commit()

    state = await _manager(db, generator, cache).start(
        user_id=user.id,
        mode=request.mode.value,
        grade=grade,
        selected_modules=modules,
        session_id=str(uuid.uuid4()),
    )
    await _save_state(cache, state)
    return _render(state)


@router.post("/sessions/{session_id}/answer", response_model=SessionResponse)
async def submit_answer(
    session_id: str,
    request: SubmitAnswerRequest,
    user: User = Depends(get_current_user),
    generator: QuestionGenerator = Depends(get_question_generator),
    cache: RedisCache = Depends(get_cache),
    db: AsyncSession = Depends(get_db)
):
    """Submit an answer for the current question"""
    state = await _load_state(cache, session_id, user.id)
    new_state = await _manager(db, generator, cache).submit_answer(
        state, user.id, request.answer, request.time_ms
    )
    if new_state is not state:
        await _save_state(cache, new_state)
    return _render(new_state)


@router.post("/sessions/{session_id}/next", response_model=SessionResponse)
async def next_question(
    session_id: str,
    user: User = Depends(get_current_user),
    generator: QuestionGenerator = Depends(get_question_generator),
    cache: RedisCache = Depends(get_cache),
    db: AsyncSession = Depends(get_db)
):
    """Move past feedback to the next question, or finish a test"""
    manager = _manager(db, generator, cache)
    state = await _load_state(cache, session_id, user.id)
    state = await manager.next_question(state, user.id)

    summary = None
    if state.phase == SessionPhase.COMPLETE:
        state, summary = manager.end_session(state)
    await _save_state(cache, state)
    return _render(state, summary)


@router.get("/sessions/{session_id}/hint")
async def get_hint(
    session_id: str,
    user: User = Depends(get_current_user),
    generator: QuestionGenerator = Depends(get_question_generator),
    cache: RedisCache = Depends(get_cache),
    db: AsyncSession = Depends(get_db)
):
    """Get a hint for the current question"""
    state = await _load_state(cache, session_id, user.id)
    hint = _manager(db, generator, cache).hint(state)

    # Track hints used
    hint_key = f"hints:{session_id}:{state.question_index}"
    hints_used = int(await cache.get(hint_key) or 0)
    if hint:
        hints_used += 1
        await cache.set(hint_key, str(hints_used), ttl=settings.SESSION_TTL_SECONDS)

    return {"hint": hint, "hints_used": hints_used}


@router.post("/sessions/{session_id}/end", response_model=SessionResponse)
async def end_practice_session(
    session_id: str,
    user: User = Depends(get_current_user),
    generator: QuestionGenerator = Depends(get_question_generator),
    cache: RedisCache = Depends(get_cache),
    db: AsyncSession = Depends(get_db)
):
    """End the session and return its summary"""
    state = await _load_state(cache, session_id, user.id)
    state, summary = _manager(db, generator, cache).end_session(state)
    await cache.delete(_session_key(session_id))
    return _render(state, summary)
