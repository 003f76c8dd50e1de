# ============================================================================
# Practice Schemas
# ============================================================================
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any, Union
from enum import Enum

from app.data.math_modules import GRADES

class SessionModeEnum(str, Enum):
    PLAY = "play"
    TEST = "test"

class StartSessionRequest(BaseModel):
    mode: SessionModeEnum = SessionModeEnum.PLAY
    grade: Optional[str] = Field(None, description=f"One of {', '.join(GRADES)}; defaults to the profile grade")
    selected_modules: Optional[List[str]] = None

class SubmitAnswerRequest(BaseModel):
    answer: str
    time_ms: int = Field(0, ge=0)

class QuestionOut(BaseModel):
    text: str
    operation: str
    index: int
    unscorable: bool = False

class SessionResponse(BaseModel):
    session_id: str
    mode: str
    phase: str
    grade: str
    question: Optional[QuestionOut] = None
    correct_count: int
    total_count: int
    current_streak: int
    difficulty: str
    session_xp: int
    feedback: str = ""
    is_correct: Optional[bool] = None
    correct_answer: Optional[Union[int, float, str]] = None
    xp_earned: int = 0
    leveled_up: bool = False
    summary: Optional[Dict[str, Any]] = None
