"""
Quiz persistence and presentation helpers used by the quiz routes and the
cleanup job.
"""
import logging
import math
import re
from datetime import timedelta
from typing import List, Optional, Sequence
from urllib.parse import quote

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from tinyquiz.core.config import settings
from tinyquiz.core.exceptions import (
    AuthorizationError,
    ExpiredError,
    NotFoundError,
    ValidationError,
)
from tinyquiz.models.orm import Difficulty, Quiz, QuizResponse, User, utcnow
from tinyquiz.models.question import Question
from tinyquiz.services.scoring import ScoreResult

logger = logging.getLogger(__name__)

OBJECT_ID_RE = re.compile(r"^[0-9a-fA-F]{24}$")
QR_ENDPOINT = "https://api.qrserver.com/v1/create-qr-code/"

def ensure_object_id(quiz_id: str) -> str:
    if not quiz_id or not OBJECT_ID_RE.match(quiz_id):
        raise ValidationError("Invalid quiz ID format")
    return quiz_id

def normalize_difficulty(difficulty: Optional[str]) -> str:
    """Unknown or missing difficulty falls back to the default."""
    valid = {d.value for d in Difficulty}
    return difficulty if difficulty in valid else settings.DEFAULT_DIFFICULTY

def normalize_time_per_question(seconds: Optional[int]) -> int:
    if seconds in settings.TIME_PER_QUESTION_OPTIONS:
        return seconds
    return settings.DEFAULT_TIME_PER_QUESTION

def quiz_questions(quiz: Quiz) -> List[Question]:
    return [Question.model_validate(q) for q in quiz.questions]

def create_quiz(
    db: Session,
    creator: User,
    topic: str,
    questions: Sequence[Question],
    provider: str,
    difficulty: str,
    time_per_question: int,
) -> Quiz:
    created_at = utcnow()
    quiz = Quiz(
        creator_id=creator.id,
        topic=topic.strip(),
        questions=[q.model_dump() for q in questions],
        question_count=len(questions),
        ai_provider=provider,
        difficulty=difficulty,
        time_per_question=time_per_question,
        created_at=created_at,
        expires_at=created_at + timedelta(minutes=settings.QUIZ_TTL_MINUTES),
    )
    db.add(quiz)
    db.commit()
    db.refresh(quiz)
    logger.info("Quiz %s created by %s (%d questions)", quiz.id, creator.id, quiz.question_count)
    return quiz

def get_quiz(db: Session, quiz_id: str) -> Quiz:
    quiz = db.get(Quiz, ensure_object_id(quiz_id))
    if quiz is None:
        raise NotFoundError("Quiz not found")
    return quiz

def get_active_quiz(db: Session, quiz_id: str, expired_message: str = "Quiz has expired") -> Quiz:
    quiz = get_quiz(db, quiz_id)
    if quiz.is_expired():
        raise ExpiredError(expired_message)
    return quiz

def get_owned_quiz(db: Session, quiz_id: str, user: User, action: str) -> Quiz:
    quiz = get_quiz(db, quiz_id)
    if quiz.creator_id != user.id:
        raise AuthorizationError(f"Unauthorized - only quiz creator can {action}")
    return quiz

def public_view(quiz: Quiz) -> dict:
    return {
        "id": quiz.id,
        "topic": quiz.topic,
        "questions": [q.public_view() for q in quiz_questions(quiz)],
        "questionCount": quiz.question_count,
        "difficulty": quiz.difficulty,
        "expiresAt": quiz.expires_at,
        "timeRemaining": quiz.time_remaining_ms(),
        "timePerQuestion": quiz.time_per_question,
    }

def record_response(db: Session, quiz: Quiz, name: str, answers: List[int], outcome: ScoreResult) -> QuizResponse:
    response = QuizResponse(
        quiz_id=quiz.id,
        respondent_name=name.strip(),
        answers=list(answers),
        score_correct=outcome.score.correct,
        score_total=outcome.score.total,
        score_percentage=outcome.score.percentage,
        submitted_at=utcnow(),
    )
    db.add(response)
    db.commit()
    logger.info("Response recorded for quiz %s: %d%%", quiz.id, outcome.score.percentage)
    return response

def share_urls(quiz: Quiz, base_url: str) -> dict:
    """Frontend and API links for a quiz; base_url is the API host."""
    api_base = base_url.rstrip("/")
    frontend = (settings.FRONTEND_URL or api_base).rstrip("/")
    return {
        "quizUrl": f"{frontend}/quiz/{quiz.id}",
        "apiUrl": f"{api_base}{settings.API_PREFIX}/quiz/{quiz.id}",
    }

def qr_code_url(data: str, size: int = 200) -> str:
    return f"{QR_ENDPOINT}?size={size}x{size}&data={quote(data, safe='')}"

def sharing_info(quiz: Quiz, base_url: str) -> dict:
    now = utcnow()
    urls = share_urls(quiz, base_url)
    quiz_url = urls["quizUrl"]
    minutes_remaining = quiz.time_remaining_ms(now) // 60000
    count = quiz.question_count
    last = quiz.responses[-1].submitted_at if quiz.responses else None

    invite = (
        f"You're invited to take a quiz!\n\nTopic: {quiz.topic}\nQuestions: {count}\n"
        f"Time limit: {settings.QUIZ_TTL_MINUTES} minutes\n\nClick here to start: {quiz_url}"
    )
    return {
        "quiz": {
            "id": quiz.id,
            "topic": quiz.topic,
            "questionCount": count,
            "createdAt": quiz.created_at,
            "expiresAt": quiz.expires_at,
            "isExpired": quiz.is_expired(now),
            "minutesRemaining": minutes_remaining,
        },
        "sharing": {
            **urls,
            "qrCode": qr_code_url(quiz_url, size=300),
            "whatsappShare": "https://wa.me/?text=" + quote(f"Take this quiz: {quiz.topic}\n{quiz_url}", safe=""),
            "emailShare": (
                "mailto:?subject=" + quote(f"Quiz: {quiz.topic}", safe="")
                + "&body=" + quote(invite, safe="")
            ),
            "shareText": (
                f"Quiz: {quiz.topic}\n{count} questions\n{minutes_remaining} minutes remaining\n\n"
                f"Take the quiz: {quiz_url}"
            ),
            "instructions": {
                "teachers": "Share any of these links with your students",
                "students": "Students just need to click the link - no account required",
                "mobile": "Show the QR code for easy mobile access",
                "timeLimit": f"Quiz expires in {minutes_remaining} minutes",
            },
        },
        "stats": {
            "totalResponses": len(quiz.responses),
            "lastSubmission": last,
        },
    }

def list_user_quizzes(db: Session, user: User, page: int, limit: int, status: Optional[str]) -> dict:
    now = utcnow()
    conditions = [Quiz.creator_id == user.id]
    if status == "active":
        conditions.append(~Quiz.expired_clause(now))
    elif status == "expired":
        conditions.append(Quiz.expired_clause(now))

    total = db.scalar(select(func.count()).select_from(Quiz).where(*conditions)) or 0
    rows = db.scalars(
        select(Quiz)
        .where(*conditions)
        .order_by(Quiz.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    quizzes = []
    for quiz in rows:
        expired = quiz.is_expired(now)
        quizzes.append({
            "id": quiz.id,
            "topic": quiz.topic,
            "questionCount": quiz.question_count,
            "createdAt": quiz.created_at,
            "expiresAt": quiz.expires_at,
            "isExpired": expired,
            "minutesRemaining": 0 if expired else quiz.time_remaining_ms(now) // 60000,
            "responseCount": len(quiz.responses),
            "status": "expired" if expired else "active",
        })

    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "quizzes": quizzes,
        "pagination": {
            "currentPage": page,
            "totalPages": total_pages,
            "totalQuizzes": total,
            "hasNextPage": page < total_pages,
            "hasPrevPage": page > 1,
            "limit": limit,
        },
    }

def delete_quiz(db: Session, quiz: Quiz) -> None:
    db.delete(quiz)
    db.commit()
    logger.info("Quiz %s deleted", quiz.id)

def purge_expired_quizzes(db: Session, creator_id: Optional[str] = None) -> int:
    """
    Delete every quiz past its expiry, optionally only one creator's.

    Safe to run repeatedly and concurrently with reads; returns the number of
    quizzes removed.
    """
    conditions = [Quiz.expired_clause(utcnow())]
    if creator_id is not None:
        conditions.append(Quiz.creator_id == creator_id)

    expired_ids = db.scalars(select(Quiz.id).where(*conditions)).all()
    if not expired_ids:
        return 0

    db.execute(delete(QuizResponse).where(QuizResponse.quiz_id.in_(expired_ids)))
    result = db.execute(delete(Quiz).where(Quiz.id.in_(expired_ids)))
    db.commit()
    logger.info("Purged %d expired quizzes", result.rowcount)
    return result.rowcount
