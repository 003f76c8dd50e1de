from app.models.user import User
from app.models.practice import AnswerRecord
from app.models.challenge import Challenge

__all__ = ["User", "AnswerRecord", "Challenge"]
