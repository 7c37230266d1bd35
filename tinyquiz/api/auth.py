from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import select
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
import jwt
import logging
from tinyquiz.core.config import settings
from tinyquiz.core.database import get_db
from tinyquiz.core.exceptions import AuthError, TinyQuizError, ValidationError
from tinyquiz.core.security import create_token, get_current_user, hash_password, verify_password
from tinyquiz.models.orm import AuthProvider, User
from tinyquiz.services import google_oauth

router = APIRouter()
logger = logging.getLogger(__name__)

class Credentials(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)

def _auth_payload(user: User) -> dict:
    return {
        "token": create_token(user.id),
        "user": {"id": user.id, "email": user.email, "createdAt": user.created_at},
    }

def _frontend_url() -> str:
    return (settings.FRONTEND_URL or "http://localhost:4200").rstrip("/")

def _callback_url(request: Request) -> str:
    if settings.GOOGLE_CALLBACK_URL.startswith("http"):
        return settings.GOOGLE_CALLBACK_URL
    return str(request.base_url).rstrip("/") + settings.GOOGLE_CALLBACK_URL

@router.post("/register", status_code=201)
def register(payload: Credentials, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    if len(payload.password) < settings.PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters long")
    if db.scalar(select(User).where(User.email == email)):
        raise ValidationError("User already exists with this email")

    user = User(email=email, password_hash=hash_password(payload.password), provider=AuthProvider.LOCAL.value)
    db.add(user); db.commit(); db.refresh(user)
    logger.info("Registered user %s", user.id)
    return _auth_payload(user)

@router.post("/login")
def login(payload: Credentials, db: Session = Depends(get_db)):
    user = db.scalar(select(User).where(User.email == payload.email.strip().lower()))
    if not user or not verify_password(payload.password, user.password_hash):
        raise AuthError("Invalid credentials")
    return _auth_payload(user)

@router.get("/google")
def google_login(request: Request):
    return RedirectResponse(google_oauth.authorization_url(_callback_url(request)))

@router.get("/google/callback")
async def google_callback(request: Request, code: str | None = None, error: str | None = None, db: Session = Depends(get_db)):
    login_url = f"{_frontend_url()}/login"
    if error or not code:
        return RedirectResponse(f"{login_url}?error=oauth_error")
    try:
        profile = await google_oauth.fetch_profile(code, _callback_url(request))
    except TinyQuizError as e:
        logger.warning("Google OAuth failed: %s", e.message)
        return RedirectResponse(f"{login_url}?error=oauth_error")

    user = await run_in_threadpool(google_oauth.upsert_google_user, db, profile)
    if user is None:
        return RedirectResponse(f"{login_url}?error=oauth_failed")
    try:
        token = create_token(user.id)
    except jwt.PyJWTError:
        logger.exception("Could not issue token for %s", user.id)
        return RedirectResponse(f"{login_url}?error=token_error")
    return RedirectResponse(f"{_frontend_url()}/auth-success?token={token}")

@router.get("/profile")
def profile(user: User = Depends(get_current_user)):
    return {"user": user.to_public()}
