# ============================================================================
# Challenge Endpoints
# ============================================================================
"""
Two-player challenge endpoints plus a WebSocket for live updates.

Usage:
    ws://host/api/v1/challenges/{id}/live?user_id=<id>

Every message is the full challenge snapshot:
    {"type": "snapshot", "data": {...challenge...}}
"""
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.core.database import get_db
from app.core.exceptions import ChallengeNotFound
from app.core.redis import RedisCache
from app.api.deps import get_cache, get_current_user, get_question_generator
from app.models.user import User
from app.schemas.challenge import (
    ChallengeAnswerRequest,
    CreateChallengeRequest,
    JoinChallengeRequest,
)
from app.services.challenge.challenge_service import ChallengeService
from app.services.practice.question_generator import QuestionGenerator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/challenges", tags=["challenges"])


def _hide_answers(challenge: dict, user_id: str) -> dict:
    """Answers stay hidden until the caller has answered that question"""
    if challenge["status"] == "completed":
        return challenge
    own = (
        challenge["creator_answers"] if user_id == challenge["creator_id"]
        else challenge["opponent_answers"]
    )
    questions = [
        {**q, "answer": q["answer"] if i < len(own) else None}
        for i, q in enumerate(challenge["questions"])
    ]
    return {**challenge, "questions": questions}


@router.post("")
async def create_challenge(
    request: CreateChallengeRequest,
    user: User = Depends(get_current_user),
    generator: QuestionGenerator = Depends(get_question_generator),
    cache: RedisCache = Depends(get_cache),
    db: AsyncSession = Depends(get_db)
):
    """Create a challenge and get its join code"""
    service = ChallengeService(db, cache=cache, generator=generator)
    challenge = await service.create(
        user_id=user.id,
        user_name=request.display_name or user.display_name,
        grade=request.grade or user.grade,
        modules=request.modules if request.modules is not None else (user.selected_modules or []),
    )
    return _hide_answers(challenge, user.id)


@router.post("/join")
async def join_challenge(
    request: JoinChallengeRequest,
    user: User = Depends(get_current_user),
    generator: QuestionGenerator = Depends(get_question_generator),
    cache: RedisCache = Depends(get_cache),
    db: AsyncSession = Depends(get_db)
):
    """Join a waiting challenge by code"""
    service = ChallengeService(db, cache=cache, generator=generator)
    challenge = await service.join(
        request.code, user.id, request.display_name or user.display_name
    )
    return _hide_answers(challenge, user.id)


@router.get("/{challenge_id}")
async def get_challenge(
    challenge_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    challenge = await ChallengeService(db).get(challenge_id)
    if not challenge:
        raise ChallengeNotFound(challenge_id)
    return _hide_answers(challenge, user.id)


@router.post("/{challenge_id}/answer")
async def submit_challenge_answer(
    challenge_id: str,
    request: ChallengeAnswerRequest,
    user: User = Depends(get_current_user),
    generator: QuestionGenerator = Depends(get_question_generator),
    cache: RedisCache = Depends(get_cache),
    db: AsyncSession = Depends(get_db)
):
    """Answer the caller's next question in the challenge"""
    service = ChallengeService(db, cache=cache, generator=generator)
    return await service.submit_answer(
        challenge_id, user.id, request.answer, request.time_ms
    )


@router.websocket("/{challenge_id}/live")
async def challenge_live(
    websocket: WebSocket,
    challenge_id: str,
    user_id: str = Query(...),
    cache: RedisCache = Depends(get_cache),
    db: AsyncSession = Depends(get_db)
):
    """Push a snapshot whenever either player acts"""
    service = ChallengeService(db, cache=cache)
    challenge = await service.get(challenge_id)
    if not challenge or user_id not in (challenge["creator_id"], challenge["opponent_id"]):
        await websocket.close(code=4004, reason="Challenge not found")
        return

    await websocket.accept()
    logger.info(f"WebSocket connected: challenge {challenge_id} - {user_id}")

    try:
        await websocket.send_json({"type": "snapshot", "data": _hide_answers(challenge, user_id)})
        if challenge["status"] == "completed":
            return
        async for snapshot in service.subscribe(challenge_id):
            await websocket.send_json({"type": "snapshot", "data": _hide_answers(snapshot, user_id)})
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected: challenge {challenge_id} - {user_id}")
    finally:
        if websocket.client_state.name == "CONNECTED":
            await websocket.close()

