# ============================================================================
# Progress Endpoints
# ============================================================================
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.api.deps import get_current_user
from app.models.user import User
from app.services.analytics.student_progress import StudentProgressAnalytics

router = APIRouter(prefix="/progress", tags=["progress"])

@router.get("/xp")
async def get_xp(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Level, XP and daily goal for the caller"""
    return await StudentProgressAnalytics(db).get_xp_overview(user.id)

@router.get("/stats")
async def get_stats(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Answer totals, accuracy, streak and weak areas"""
    stats = await StudentProgressAnalytics(db).get_stats(user.id, grade=user.grade)
    return {**stats, "grade": user.grade}
