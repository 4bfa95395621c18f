"""
FastAPI authentication dependencies.

Requests authenticate with a Bearer JWT issued by the login endpoints; the
token's ``sub`` names a row in the ``sessions`` table.
"""

from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.auth_utils import decode_jwt, verify_session
from app.db.connection import get_db_session
from app.db.models import User

_bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer_scheme),
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db_session),
) -> User:
    """
    Validate a Bearer JWT token and return the authenticated ``User``.

    Raises:
        HTTPException 401 if the token is missing, expired, or invalid.
    """
    if credentials is None:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    payload = decode_jwt(credentials.credentials, settings)
    if payload is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    session_token = payload.get("sub")
    if not session_token:
        raise HTTPException(status_code=401, detail="Invalid token payload")

    user = verify_session(db, session_token)
    if user is None:
        raise HTTPException(status_code=401, detail="Session expired or revoked")

    return user
