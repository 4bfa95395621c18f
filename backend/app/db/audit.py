"""
Audit logging utilities.

Convenience helpers that create ``AuditLog`` rows for authentication
events such as login, signup, Google sign-in and email verification.
"""

import uuid
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.db.models import AuditLog


# ── Core helper ──────────────────────────────────────────────────────────────

def log_action(
    db_session: Session,
    user_id: Optional[uuid.UUID],
    action_type: str,
    action_details: Optional[Dict[str, Any]] = None,
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None,
    session_id: Optional[uuid.UUID] = None,
    ip_address: Optional[str] = None,
) -> AuditLog:
    """
    Create an ``AuditLog`` entry and add it to the given *db_session*.

    The caller is responsible for committing the session.
    """
    entry = AuditLog(
        user_id=user_id,
        session_id=session_id,
        action_type=action_type,
        action_details=action_details,
        resource_type=resource_type,
        resource_id=resource_id,
        ip_address=ip_address,
    )
    db_session.add(entry)
    return entry


# ── Convenience wrappers ─────────────────────────────────────────────────────

def log_login(db: Session, user_id: uuid.UUID, ip: Optional[str] = None) -> AuditLog:
    return log_action(db, user_id=user_id, action_type="user.login",
                      resource_type="user", resource_id=str(user_id), ip_address=ip)


def log_google_login(db: Session, user_id: uuid.UUID, ip: Optional[str] = None) -> AuditLog:
    return log_action(db, user_id=user_id, action_type="user.google_login",
                      resource_type="user", resource_id=str(user_id), ip_address=ip)


def log_logout(db: Session, user_id: uuid.UUID) -> AuditLog:
    return log_action(db, user_id=user_id, action_type="user.logout",
                      resource_type="user", resource_id=str(user_id))


def log_signup(db: Session, user_id: uuid.UUID, ip: Optional[str] = None) -> AuditLog:
    return log_action(db, user_id=user_id, action_type="user.signup",
                      resource_type="user", resource_id=str(user_id), ip_address=ip)


def log_email_verified(db: Session, user_id: uuid.UUID) -> AuditLog:
    return log_action(db, user_id=user_id, action_type="user.email_verified",
                      resource_type="user", resource_id=str(user_id))


def log_code_issued(
    db: Session, user_id: uuid.UUID, code_id: uuid.UUID,
) -> AuditLog:
    return log_action(db, user_id=user_id, action_type="verification.issued",
                      resource_type="verification_code",
                      resource_id=str(code_id))
