# ============================================================================
# User Models
# ============================================================================
from sqlalchemy import Column, String, Integer, DateTime, Date, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base

class User(Base):
    """A learner. Identity comes from the external auth provider."""
    __tablename__ = "users"

    id = Column(String(128), primary_key=True)
    display_name = Column(String(100))
    grade = Column(String(10), nullable=False, default="4-5")  # KG-1, 2-3, 4-5, 6-7, 7-8, 9+
    selected_modules = Column(JSON, default=list)

    # XP store
    total_xp = Column(Integer, nullable=False, default=0)
    level = Column(Integer, nullable=False, default=1)
    daily_question_count = Column(Integer, nullable=False, default=0)
    daily_goal = Column(Integer, nullable=False, default=10)
    last_active_date = Column(Date)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    answers = relationship("AnswerRecord", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User {self.id} (level {self.level}, {self.total_xp} XP)>"
