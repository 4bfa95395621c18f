"""
Session persistence: JWT helpers and the ``sessions`` table lifecycle.

An authenticated account gets a random session token stored in the
database; the client receives a JWT whose ``sub`` is that token.
"""

import secrets
from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt
from sqlalchemy.orm import Session

from app.db.models import User, Session as SessionModel


# ── JWT helpers ──────────────────────────────────────────────────────────────

def create_jwt(session_token: str, user_id: str, settings) -> str:
    """Create a signed JWT embedding the session token and user identity."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": session_token,
        "user_id": str(user_id),
        "exp": now + timedelta(days=settings.JWT_EXPIRY_DAYS),
        "iat": now,
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_jwt(token: str, settings) -> dict | None:
    """Decode and validate a JWT. Returns payload or None."""
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except jwt.InvalidTokenError:
        return None


# ── Database session management ──────────────────────────────────────────────

def create_session(
    db: Session,
    user_id: UUID,
    ip_address: str | None = None,
    user_agent: str | None = None,
    expires_in_days: int = 7,
) -> SessionModel:
    """Create a new authenticated session row."""
    token = secrets.token_hex(32)
    now = datetime.now(timezone.utc)

    session_obj = SessionModel(
        user_id=user_id,
        session_token=token,
        ip_address=ip_address,
        user_agent=user_agent,
        expires_at=now + timedelta(days=expires_in_days),
        last_activity=now,
    )
    db.add(session_obj)
    db.flush()
    return session_obj


def verify_session(db: Session, session_token: str) -> User | None:
    """Look up an active session by token. Returns User or None."""
    now = datetime.now(timezone.utc)

    session_obj = (
        db.query(SessionModel)
        .filter(
            SessionModel.session_token == session_token,
            SessionModel.is_revoked.is_(False),
            SessionModel.expires_at > now,
        )
        .first()
    )
    if session_obj is None:
        return None

    session_obj.last_activity = now
    db.flush()

    return db.query(User).filter(User.id == session_obj.user_id, User.is_active.is_(True)).first()


def revoke_user_sessions(db: Session, user_id: UUID) -> int:
    """Revoke every live session of *user_id*. Returns the number revoked."""
    now = datetime.now(timezone.utc)
    rows_updated = (
        db.query(SessionModel)
        .filter(
            SessionModel.user_id == user_id,
            SessionModel.is_revoked.is_(False),
            SessionModel.expires_at > now,
        )
        .update({"is_revoked": True})
    )
    db.flush()
    return rows_updated
