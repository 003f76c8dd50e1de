# ============================================================================
# Main API Router
# ============================================================================
from fastapi import APIRouter

from app.api.v1 import practice, progress, challenges

api_router = APIRouter()

# Practice sessions (play / test)
api_router.include_router(practice.router)
# XP, levels and answer statistics
api_router.include_router(progress.router)
# Two-player challenges, including the live WebSocket
api_router.include_router(challenges.router)
