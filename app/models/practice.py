# ============================================================================
# Practice Models
# ============================================================================
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from datetime import datetime, timezone
import uuid
from app.core.database import Base

class AnswerRecord(Base):
    """One persisted answer event"""
    __tablename__ = "answers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(128), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    question = Column(Text, nullable=False)
    operation = Column(String(40), nullable=False)  # addition, fractions, logic_patterns, ...
    user_answer = Column(String(100))
    correct_answer = Column(String(100))
    correct = Column(Boolean, nullable=False, default=False)
    time_ms = Column(Integer)
    mode = Column(String(20))  # play, test, challenge_creator, challenge_opponent

    timestamp = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        index=True,
    )

    user = relationship("User", back_populates="answers")

    def __repr__(self):
        return f"<AnswerRecord {self.id} ({'✓' if self.correct else '✗'})>"
