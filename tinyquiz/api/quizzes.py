from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field, conint
from typing import List, Optional, Literal
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from tinyquiz.core.config import settings
from tinyquiz.core.database import get_db
from tinyquiz.core.exceptions import ValidationError
from tinyquiz.core.security import get_current_user
from tinyquiz.models.orm import User
from tinyquiz.services import quizzes as quiz_service
from tinyquiz.services.generator import QuestionGenerator, get_generator
from tinyquiz.services.scoring import aggregate_responses, score_answers

router = APIRouter()

class QuizGenerate(BaseModel):
  model_config = ConfigDict(populate_by_name=True)
  topic: str = Field(max_length=200)
  question_count: Optional[int] = Field(default=None, alias="questionCount")
  provider: Optional[str] = None
  difficulty: Optional[str] = None
  time_per_question: Optional[int] = Field(default=None, alias="timePerQuestion")

class QuizSubmit(BaseModel):
  name: str
  answers: List[conint(ge=-1, le=3)]

@router.post("/generate", status_code=201)
async def generate_quiz(
  payload: QuizGenerate,
  request: Request,
  user: User = Depends(get_current_user),
  db: Session = Depends(get_db),
  generator: QuestionGenerator = Depends(get_generator),
):
  count = payload.question_count if payload.question_count is not None else settings.DEFAULT_QUESTION_COUNT
  provider = (payload.provider or generator.default_provider).lower()
  difficulty = quiz_service.normalize_difficulty(payload.difficulty)
  time_per_question = quiz_service.normalize_time_per_question(payload.time_per_question)

  questions = await generator.generate(payload.topic, count, provider, difficulty)
  source = generator.get_source(provider)
  quiz = await run_in_threadpool(
    quiz_service.create_quiz, db, user, payload.topic, questions, provider, difficulty, time_per_question
  )

  urls = quiz_service.share_urls(quiz, str(request.base_url))
  return {
    "id": quiz.id,
    "topic": quiz.topic,
    "questionCount": quiz.question_count,
    "aiProvider": provider,
    "aiProviderName": source.display_name,
    "difficulty": quiz.difficulty,
    "timePerQuestion": quiz.time_per_question,
    "expiresAt": quiz.expires_at,
    "message": f"Quiz generated successfully using {source.display_name}",
    "sharing": {
      **urls,
      "qrCode": quiz_service.qr_code_url(urls["quizUrl"], size=200),
      "instructions": "Share this link with students to take the quiz",
      "expiresIn": f"{settings.QUIZ_TTL_MINUTES} minutes",
    },
  }

@router.get("/my-quizzes")
def my_quizzes(
  page: int = Query(1, ge=1),
  limit: int = Query(10, ge=1, le=100),
  status: Optional[Literal["active", "expired"]] = None,
  user: User = Depends(get_current_user),
  db: Session = Depends(get_db),
):
  return quiz_service.list_user_quizzes(db, user, page, limit, status)

@router.post("/cleanup-expired")
def cleanup_expired(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
  deleted = quiz_service.purge_expired_quizzes(db, creator_id=user.id)
  return {"success": True, "deletedCount": deleted, "message": f"{deleted} expired quiz(es) have been removed"}

@router.get("/{quiz_id}")
def get_quiz(quiz_id: str, db: Session = Depends(get_db)):
  quiz = quiz_service.get_active_quiz(db, quiz_id)
  return quiz_service.public_view(quiz)

@router.post("/{quiz_id}/submit")
def submit_quiz(quiz_id: str, payload: QuizSubmit, db: Session = Depends(get_db)):
  quiz_service.ensure_object_id(quiz_id)
  name = payload.name.strip()
  if not name:
    raise ValidationError("Name is required and must be a non-empty string")

  quiz = quiz_service.get_active_quiz(db, quiz_id, "Quiz has expired and no longer accepts submissions")
  if len(payload.answers) != quiz.question_count:
    raise ValidationError(f"Expected {quiz.question_count} answers, received {len(payload.answers)}")

  outcome = score_answers(quiz_service.quiz_questions(quiz), payload.answers)
  quiz_service.record_response(db, quiz, name, payload.answers, outcome)
  score = outcome.score
  return {
    "success": True,
    "score": score.to_dict(),
    "results": [r.to_dict() for r in outcome.results],
    "message": f"Quiz completed! You scored {score.correct} out of {score.total} ({score.percentage}%)",
  }

@router.get("/{quiz_id}/results")
def quiz_results(quiz_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
  quiz = quiz_service.get_owned_quiz(db, quiz_id, user, "view results")
  responses = quiz.responses
  analytics = aggregate_responses(
    quiz_service.quiz_questions(quiz),
    [r.answers for r in responses],
    [r.score_percentage for r in responses],
  )
  return {
    "quiz": {
      "id": quiz.id,
      "topic": quiz.topic,
      "creator": quiz.creator.email,
      "createdAt": quiz.created_at,
      "expiresAt": quiz.expires_at,
      "questionCount": quiz.question_count,
    },
    "analytics": analytics.summary(),
    "questionAnalytics": [q.to_dict() for q in analytics.questions],
    "responses": [
      {"name": r.respondent_name, "score": r.score, "submittedAt": r.submitted_at, "answers": r.answers}
      for r in responses
    ],
  }

@router.get("/{quiz_id}/share")
def quiz_sharing(quiz_id: str, request: Request, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
  quiz = quiz_service.get_owned_quiz(db, quiz_id, user, "access sharing info")
  return quiz_service.sharing_info(quiz, str(request.base_url))

@router.delete("/{quiz_id}")
def delete_quiz(quiz_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
  quiz = quiz_service.get_owned_quiz(db, quiz_id, user, "delete this quiz")
  quiz_service.delete_quiz(db, quiz)
  return {"success": True, "message": "Quiz successfully deleted"}
