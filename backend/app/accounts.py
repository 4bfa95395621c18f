"""
Account store: lookups and writes against the ``users`` table.

Emails are matched case-insensitively through ``users.email_lower``.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db.models import User, normalize_email
from app.errors import ConflictError

logger = logging.getLogger(__name__)


def find_user_by_email(db: Session, email: str) -> Optional[User]:
    """Return the account registered under *email*, or ``None``."""
    email_lower = normalize_email(email)
    if not email_lower:
        return None
    return db.execute(
        select(User).where(User.email_lower == email_lower)
    ).scalar_one_or_none()


def create_user(
    db: Session,
    email: str,
    password_hash: Optional[str],
    display_name: Optional[str] = None,
    **fields: Any,
) -> User:
    """
    Insert a new account row.

    Raises ``ConflictError`` when the unique email index rejects the row;
    the session is rolled back in that case.
    """
    user = User(
        email=email.strip(),
        password_hash=password_hash,
        display_name=display_name.strip() if display_name else None,
        **fields,
    )
    db.add(user)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        logger.info("Signup rejected, email already registered: %s", user.email_lower)
        raise ConflictError() from exc
    return user


def _dialect_insert(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"upsert not supported on {dialect}")
    return insert


def upsert_user_by_email(db: Session, email: str, **create_fields: Any) -> User:
    """
    Find-or-create an account keyed on *email* in a single statement.

    Issues ``INSERT ... ON CONFLICT (email_lower) DO NOTHING`` and then
    reads the row back, so concurrent callers for the same new email
    converge on one account.  An existing row is returned unchanged.
    """
    email_lower = normalize_email(email)
    insert = _dialect_insert(db)
    stmt = (
        insert(User)
        .values(
            id=uuid.uuid4(),
            email=email.strip(),
            email_lower=email_lower,
            **create_fields,
        )
        .on_conflict_do_nothing(index_elements=["email_lower"])
    )
    db.execute(stmt)
    return db.execute(
        select(User).where(User.email_lower == email_lower)
    ).scalar_one()
