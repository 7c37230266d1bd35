"""
Persistence models: users, quizzes and the responses collected per quiz.
"""
from sqlalchemy import Integer, String, Text, DateTime, ForeignKey, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
import enum
import itertools
import os
import random
import time
from tinyquiz.core.database import Base

_OID_PROCESS_BYTES = os.urandom(5).hex()
_oid_counter = itertools.count(random.randint(0, 0xFFFFFF))

def new_object_id() -> str:
    """24-char hex id: 4-byte timestamp, 5 process bytes, 3-byte counter."""
    return f"{int(time.time()) & 0xFFFFFFFF:08x}{_OID_PROCESS_BYTES}{next(_oid_counter) & 0xFFFFFF:06x}"

def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

class AuthProvider(str, enum.Enum):
    LOCAL = "local"
    GOOGLE = "google"

class AIProvider(str, enum.Enum):
    GEMINI = "gemini"
    NVIDIA = "nvidia"

class Difficulty(str, enum.Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(24), primary_key=True, default=new_object_id)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    google_id: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    name: Mapped[Optional[str]] = mapped_column(String(255))
    profile_picture: Mapped[Optional[str]] = mapped_column(Text)
    provider: Mapped[str] = mapped_column(String(20), default=AuthProvider.LOCAL.value, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    quizzes: Mapped[List["Quiz"]] = relationship(back_populates="creator", cascade="all, delete-orphan")

    def to_public(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "profilePicture": self.profile_picture,
            "provider": self.provider,
            "createdAt": self.created_at,
        }

class Quiz(Base):
    __tablename__ = "quizzes"
    __table_args__ = (
        Index("idx_quizzes_creator_created", "creator_id", "created_at"),
        Index("idx_quizzes_expires", "expires_at"),
    )

    id: Mapped[str] = mapped_column(String(24), primary_key=True, default=new_object_id)
    creator_id: Mapped[str] = mapped_column(String(24), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    topic: Mapped[str] = mapped_column(String(200), nullable=False)
    # Canonical question dicts: question, options, correct_answer, explanation
    questions: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False)
    question_count: Mapped[int] = mapped_column(Integer, nullable=False)
    ai_provider: Mapped[str] = mapped_column(String(20), default=AIProvider.GEMINI.value, nullable=False)
    difficulty: Mapped[str] = mapped_column(String(10), default=Difficulty.EASY.value, nullable=False)
    time_per_question: Mapped[int] = mapped_column(Integer, default=30, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    creator: Mapped["User"] = relationship(back_populates="quizzes")
    responses: Mapped[List["QuizResponse"]] = relationship(
        back_populates="quiz",
        cascade="all, delete-orphan",
        order_by="QuizResponse.submitted_at",
    )

    @classmethod
    def expired_clause(cls, now: datetime):
        """SQL twin of is_expired(); a quiz is still open at its exact expiry instant."""
        return cls.expires_at < now

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) > self.expires_at

    def time_remaining_ms(self, now: Optional[datetime] = None) -> int:
        remaining = self.expires_at - (now or utcnow())
        return max(0, int(remaining.total_seconds() * 1000))

class QuizResponse(Base):
    __tablename__ = "quiz_responses"
    __table_args__ = (
        Index("idx_qr_quiz_submitted", "quiz_id", "submitted_at"),
    )

    id: Mapped[str] = mapped_column(String(24), primary_key=True, default=new_object_id)
    quiz_id: Mapped[str] = mapped_column(String(24), ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False)
    respondent_name: Mapped[str] = mapped_column(String(255), nullable=False)
    answers: Mapped[List[int]] = mapped_column(JSON, nullable=False)
    score_correct: Mapped[int] = mapped_column(Integer, nullable=False)
    score_total: Mapped[int] = mapped_column(Integer, nullable=False)
    score_percentage: Mapped[int] = mapped_column(Integer, nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    quiz: Mapped["Quiz"] = relationship(back_populates="responses")

    @property
    def score(self) -> Dict[str, int]:
        return {
            "correct": self.score_correct,
            "total": self.score_total,
            "percentage": self.score_percentage,
        }
