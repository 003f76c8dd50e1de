# ============================================================================
# API Dependencies
# ============================================================================
from typing import Optional
from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.core.database import get_db
from app.core.redis import cache, RedisCache
from app.models.user import User
from app.config import get_settings
from app.services.practice.question_generator import QuestionGenerator

settings = get_settings()
logger = logging.getLogger(__name__)


# ============================================================================
# Shared Services
# ============================================================================
def get_cache() -> RedisCache:
    return cache


async def get_question_generator(request: Request) -> QuestionGenerator:
    """
    Question generator from app state.

    Built once at startup so the Gemini client is configured a single time.
    """
    generator = getattr(request.app.state, "question_generator", None)
    if generator is None:
        generator = QuestionGenerator()
        request.app.state.question_generator = generator
    return generator


# ============================================================================
# User Dependencies
# ============================================================================
async def get_current_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id")
) -> str:
    """Caller identity as established by the auth provider"""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header"
        )
    return x_user_id.strip()


async def get_current_user(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Learner row for the caller, created on first contact"""
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        user = User(
            id=user_id,
            total_xp=0,
            level=1,
            daily_question_count=0,
            daily_goal=settings.DEFAULT_DAILY_GOAL,
            selected_modules=[],
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        logger.info(f"Provisioned learner profile for {user_id}")

    return user
