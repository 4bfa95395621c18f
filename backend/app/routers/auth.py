"""
Authentication endpoints: email/password form, Google OAuth, email
verification, logout, current user.

Rate-limited per IP: login (10/min), signup (5/min), verification (10/min).
"""

from __future__ import annotations

import logging
import secrets
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, Response
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.auth import get_current_user
from app.auth_utils import create_jwt, create_session, revoke_user_sessions
from app.config import get_settings, Settings
from app.db.audit import log_google_login, log_login, log_logout, log_signup
from app.db.connection import get_db_session
from app.db.models import User
from app.rate_limit import get_client_ip, login_limiter, signup_limiter, verify_limiter
from app.resolver import CredentialResolver
from app.strategies import (
    FORM_STRATEGY,
    GOOGLE_STRATEGY,
    Authenticator,
    GoogleStrategy,
    get_authenticator,
)
from app.verification import consume_verification_code

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["auth"])

OAUTH_STATE_COOKIE = "oauth_state"
OAUTH_STATE_MAX_AGE = 600


# ── Request / response schemas ───────────────────────────────────────────────

class VerifyRequest(BaseModel):
    code: str = Field(..., pattern=r"^[0-9]{8}$")


class AuthResponse(BaseModel):
    token: str
    user_id: str
    email: str
    display_name: Optional[str] = None
    email_verified: bool = False


class UserResponse(BaseModel):
    user_id: str
    email: str
    display_name: Optional[str] = None
    email_verified: bool = False
    is_google_signup: bool = False


def get_resolver(request: Request) -> CredentialResolver:
    resolver = getattr(request.app.state, "resolver", None)
    if resolver is None:
        raise HTTPException(status_code=503, detail="Authentication is not configured")
    return resolver


def _issue_session(
    db: Session, user: User, request: Request, settings: Settings,
) -> AuthResponse:
    ip = request.client.host if request.client else None
    user_agent = request.headers.get("user-agent")

    session_obj = create_session(
        db, user.id, ip_address=ip, user_agent=user_agent,
        expires_in_days=settings.SESSION_EXPIRY_DAYS,
    )
    token = create_jwt(session_obj.session_token, str(user.id), settings)
    return AuthResponse(
        token=token,
        user_id=str(user.id),
        email=user.email,
        display_name=user.display_name,
        email_verified=user.email_verified,
    )


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        user_id=str(user.id),
        email=user.email,
        display_name=user.display_name,
        email_verified=user.email_verified,
        is_google_signup=user.is_google_signup,
    )


def _google_strategy(authenticator: Authenticator) -> GoogleStrategy:
    if not authenticator.has(GOOGLE_STRATEGY):
        raise HTTPException(status_code=503, detail="Google sign-in is not configured")
    return authenticator.get(GOOGLE_STRATEGY)


# ── Email / password ─────────────────────────────────────────────────────────

@router.post("/form", response_model=AuthResponse)
def form_auth(
    request: Request,
    body: Any = Body(...),
    db: Session = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
    authenticator: Authenticator = Depends(get_authenticator),
) -> AuthResponse:
    """Log in or sign up with email/password, depending on ``type``."""
    is_signup = isinstance(body, dict) and body.get("type") == "signup"
    ip = get_client_ip(request)
    (signup_limiter if is_signup else login_limiter).check(ip)

    user = authenticator.authenticate(FORM_STRATEGY, db, form=body)

    if is_signup:
        log_signup(db, user_id=user.id, ip=ip)
    else:
        log_login(db, user_id=user.id, ip=ip)

    return _issue_session(db, user, request, settings)


# ── Google OAuth ─────────────────────────────────────────────────────────────

@router.get("/google")
def google_login(
    settings: Settings = Depends(get_settings),
    authenticator: Authenticator = Depends(get_authenticator),
) -> RedirectResponse:
    """Redirect to Google's consent screen."""
    strategy = _google_strategy(authenticator)
    state = secrets.token_urlsafe(24)

    response = RedirectResponse(strategy.authorization_url(state), status_code=302)
    response.set_cookie(
        OAUTH_STATE_COOKIE,
        state,
        max_age=OAUTH_STATE_MAX_AGE,
        httponly=True,
        samesite="lax",
        secure=not settings.is_development,
    )
    return response


@router.get("/google/callback", response_model=AuthResponse)
def google_callback(
    request: Request,
    response: Response,
    code: str = Query(default=""),
    state: str = Query(default=""),
    error: Optional[str] = Query(default=None),
    db: Session = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
    authenticator: Authenticator = Depends(get_authenticator),
) -> AuthResponse:
    """Finish the Google flow: check state, exchange the code, sign in."""
    strategy = _google_strategy(authenticator)

    expected_state = request.cookies.get(OAUTH_STATE_COOKIE)
    if not expected_state or not state or not secrets.compare_digest(expected_state, state):
        raise HTTPException(status_code=400, detail="Invalid OAuth state")
    if error or not code:
        logger.warning("Google callback without a usable code (error=%r)", error)
        raise HTTPException(status_code=400, detail="Google sign-in failed")

    user = strategy.authenticate(db, code=code)
    ip = get_client_ip(request)
    log_google_login(db, user_id=user.id, ip=ip)

    response.delete_cookie(OAUTH_STATE_COOKIE)
    return _issue_session(db, user, request, settings)


# ── Email verification ───────────────────────────────────────────────────────

@router.post("/verify", response_model=UserResponse)
def verify_email(
    body: VerifyRequest,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
) -> UserResponse:
    """Consume the emailed verification code."""
    verify_limiter.check(get_client_ip(request))
    consume_verification_code(db, user, body.code)
    return _user_response(user)


@router.post("/verify/resend", status_code=202)
def resend_verification(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
    resolver: CredentialResolver = Depends(get_resolver),
) -> dict:
    """Issue a fresh verification code, replacing the previous one."""
    verify_limiter.check(get_client_ip(request))
    if user.email_verified:
        return {"status": "ok", "message": "Email already verified"}

    # Release this request's write locks before the issuing task runs.
    db.commit()
    resolver.send_verification_code(user.id)
    return {"status": "accepted", "message": "Verification code sent"}


# ── Session ──────────────────────────────────────────────────────────────────

@router.post("/logout")
def logout(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
) -> dict:
    """Revoke the current user's sessions."""
    revoke_user_sessions(db, user.id)
    log_logout(db, user_id=user.id)
    return {"status": "ok", "message": "Logged out successfully"}


@router.get("/me", response_model=UserResponse)
def get_me(
    user: User = Depends(get_current_user),
) -> UserResponse:
    """Return the current authenticated user's profile."""
    return _user_response(user)
