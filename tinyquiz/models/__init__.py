from .question import Question, OPTION_COUNT
from .orm import User, Quiz, QuizResponse, AIProvider, Difficulty, AuthProvider, new_object_id, utcnow

__all__ = [
    "Question",
    "OPTION_COUNT",
    "User",
    "Quiz",
    "QuizResponse",
    "AIProvider",
    "Difficulty",
    "AuthProvider",
    "new_object_id",
    "utcnow",
]
