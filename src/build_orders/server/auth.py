import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from build_orders.server.config import Settings
from build_orders.server.database import get_db
from build_orders.server.models import AuthSession, User

logger = logging.getLogger("build_orders.server.auth")

SESSION_COOKIE = "session_token"


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def hash_token(settings: Settings, token: str) -> str:
    """Only keyed digests of session tokens are stored."""
    return hmac.new(settings.session_secret.encode(), token.encode(), hashlib.sha256).hexdigest()


def _as_aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def start_session(db: Session, settings: Settings, user: User) -> tuple[str, AuthSession]:
    token = secrets.token_urlsafe(32)
    session = AuthSession(
        token_hash=hash_token(settings, token),
        user_id=user.id,
        expires_at=datetime.now(timezone.utc) + timedelta(seconds=settings.session_max_age),
    )
    db.add(session)
    db.commit()
    logger.info(f"Session opened for user {user.id}")
    return token, session


def end_session(db: Session, settings: Settings, token: str) -> bool:
    session = db.scalars(select(AuthSession).where(AuthSession.token_hash == hash_token(settings, token))).first()
    if session is None:
        return False
    db.delete(session)
    db.commit()
    return True


def resolve_session(db: Session, settings: Settings, token: Optional[str]) -> Optional[AuthSession]:
    """Resolves a token to its live session; expired sessions are removed."""
    if not token:
        return None
    session = db.scalars(select(AuthSession).where(AuthSession.token_hash == hash_token(settings, token))).first()
    if session is None:
        return None
    if _as_aware(session.expires_at) <= datetime.now(timezone.utc):
        db.delete(session)
        db.commit()
        return None
    return session


def token_from_request(request: Request) -> Optional[str]:
    """Cookie first, then an Authorization header ('Bearer <token>' or the bare token)."""
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        return token
    header = request.headers.get("Authorization")
    if not header:
        return None
    scheme, _, value = header.partition(" ")
    if value and scheme.lower() == "bearer":
        return value.strip()
    return header.strip() or None


# --- Dependencies ---

def current_session(request: Request, db: Session = Depends(get_db),
                    settings: Settings = Depends(get_settings)) -> Optional[AuthSession]:
    return resolve_session(db, settings, token_from_request(request))


def current_user(session: Optional[AuthSession] = Depends(current_session)) -> Optional[User]:
    return session.user if session else None


def require_user(user: Optional[User] = Depends(current_user)) -> User:
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user
