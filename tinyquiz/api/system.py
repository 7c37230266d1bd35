from fastapi import APIRouter, Depends
from tinyquiz.core.config import settings
from tinyquiz.models.orm import utcnow
from tinyquiz.services.generator import QuestionGenerator, get_generator

router = APIRouter()

ENDPOINTS = {
  "auth": {
    "POST /api/auth/register": "Register a new user",
    "POST /api/auth/login": "Login user",
    "GET /api/auth/google": "Start Google sign-in",
    "GET /api/auth/google/callback": "Google sign-in callback",
    "GET /api/auth/profile": "Get user profile (requires auth)",
  },
  "quiz": {
    "POST /api/quiz/generate": "Generate new quiz (requires auth)",
    "GET /api/quiz/my-quizzes": "List your quizzes (requires auth)",
    "POST /api/quiz/cleanup-expired": "Remove your expired quizzes (requires auth)",
    "GET /api/quiz/:id": "Get quiz for taking",
    "POST /api/quiz/:id/submit": "Submit quiz answers",
    "GET /api/quiz/:id/results": "Get quiz results (requires auth, creator only)",
    "GET /api/quiz/:id/share": "Get sharing links (requires auth, creator only)",
    "DELETE /api/quiz/:id": "Delete quiz (requires auth, creator only)",
  },
  "system": {
    "GET /api/health": "Health check",
    "GET /api/docs": "API documentation",
    "GET /api/providers": "Available AI providers",
  },
}

@router.get("/health", tags=["Health"])
def health():
  return {
    "status": "healthy",
    "version": settings.APP_VERSION,
    "environment": settings.ENVIRONMENT,
    "timestamp": utcnow(),
  }

@router.get("/docs", tags=["System"])
def api_docs():
  return {"name": settings.APP_NAME, "version": settings.APP_VERSION, "endpoints": ENDPOINTS}

@router.get("/providers", tags=["System"])
def providers(generator: QuestionGenerator = Depends(get_generator)):
  return generator.available_providers()
