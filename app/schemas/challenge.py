# ============================================================================
# Challenge Schemas
# ============================================================================
from pydantic import BaseModel, Field
from typing import Optional, List

class CreateChallengeRequest(BaseModel):
    grade: Optional[str] = None
    modules: Optional[List[str]] = None
    display_name: Optional[str] = None

class JoinChallengeRequest(BaseModel):
    code: str = Field(..., min_length=6, max_length=6)
    display_name: Optional[str] = None

class ChallengeAnswerRequest(BaseModel):
    answer: str
    time_ms: int = Field(0, ge=0)
