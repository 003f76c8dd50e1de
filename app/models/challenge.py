# ============================================================================
# Challenge Models
# ============================================================================
from sqlalchemy import Column, String, DateTime, JSON
from sqlalchemy.sql import func
from app.core.database import Base

class Challenge(Base):
    """Two-player challenge sharing one fixed question set"""
    __tablename__ = "challenges"

    id = Column(String(64), primary_key=True)  # challenge_<CODE>_<millis>
    code = Column(String(6), nullable=False, index=True)

    creator_id = Column(String(128), nullable=False)
    creator_name = Column(String(100))
    opponent_id = Column(String(128))
    opponent_name = Column(String(100))

    grade = Column(String(10), nullable=False)
    modules = Column(JSON, default=list)

    # [{question, answer, operation}], fixed at creation
    questions = Column(JSON, nullable=False)
    # [{answer, correct, time_ms}], index-aligned with questions
    creator_answers = Column(JSON, nullable=False, default=list)
    opponent_answers = Column(JSON, nullable=False, default=list)

    status = Column(String(20), nullable=False, default="waiting")  # waiting, active, completed

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    started_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))

    def __repr__(self):
        return f"<Challenge {self.code} ({self.status})>"
