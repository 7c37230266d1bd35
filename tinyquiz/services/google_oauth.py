"""
Google OAuth 2.0 authorization-code flow.
"""
import logging
from typing import Optional
from urllib.parse import urlencode

import httpx
from sqlalchemy import select
from sqlalchemy.orm import Session

from tinyquiz.core.config import settings
from tinyquiz.core.exceptions import AuthError, ConfigurationError
from tinyquiz.models.orm import AuthProvider, User

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"

def is_configured() -> bool:
    return bool(settings.GOOGLE_CLIENT_ID and settings.GOOGLE_CLIENT_SECRET)

def _require_configured() -> None:
    if not is_configured():
        raise ConfigurationError("Google authentication is not configured")

def authorization_url(redirect_uri: str) -> str:
    _require_configured()
    params = {
        "client_id": settings.GOOGLE_CLIENT_ID,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": "openid email profile",
        "access_type": "online",
        "prompt": "select_account",
    }
    return f"{AUTHORIZE_URL}?{urlencode(params)}"

async def fetch_profile(code: str, redirect_uri: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> dict:
    """Exchange an authorization code and return Google's userinfo payload."""
    _require_configured()
    async with httpx.AsyncClient(timeout=10.0, transport=transport) as client:
        token_resp = await client.post(TOKEN_URL, data={
            "code": code,
            "client_id": settings.GOOGLE_CLIENT_ID,
            "client_secret": settings.GOOGLE_CLIENT_SECRET.get_secret_value(),
            "redirect_uri": redirect_uri,
            "grant_type": "authorization_code",
        })
        if token_resp.status_code != 200:
            logger.warning("Google token exchange failed (%s)", token_resp.status_code)
            raise AuthError("Google token exchange failed")
        access_token = token_resp.json().get("access_token")
        if not access_token:
            raise AuthError("Google token exchange failed")

        info_resp = await client.get(USERINFO_URL, headers={"Authorization": f"Bearer {access_token}"})
        if info_resp.status_code != 200:
            raise AuthError("Could not load Google profile")
        return info_resp.json()

def upsert_google_user(db: Session, profile: dict) -> Optional[User]:
    """
    Find or create the local user for a Google profile.

    Matches on Google id first, then links an existing account with the same
    email, else creates a new Google user.
    """
    google_id = profile.get("sub")
    email = (profile.get("email") or "").strip().lower()
    if not google_id or not email:
        return None

    user = db.scalar(select(User).where(User.google_id == google_id))
    if user is None:
        user = db.scalar(select(User).where(User.email == email))
        if user is not None:
            user.google_id = google_id
            user.provider = AuthProvider.GOOGLE.value
        else:
            user = User(email=email, google_id=google_id, provider=AuthProvider.GOOGLE.value)
            db.add(user)

    user.name = profile.get("name") or user.name
    user.profile_picture = profile.get("picture") or user.profile_picture
    db.commit()
    db.refresh(user)
    return user
