"""
Email verification codes: issuing and consuming.

Each account holds at most one live code.  Issuing replaces any previous
code inside a single transaction and only then attempts delivery, so a
mail failure never takes the stored code with it.  Expiry is checked when a
code is consumed; nothing sweeps expired rows in the background.
"""

from __future__ import annotations

import hmac
import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from app.db.audit import log_code_issued, log_email_verified
from app.db.models import User, VerificationCode
from app.errors import DeliveryError, VerificationCodeError
from app.mailer import VERIFICATION_SUBJECT, Mailer

logger = logging.getLogger(__name__)

CODE_LENGTH = 8
CODE_ALPHABET = "0123456789"
DEFAULT_TTL_MINUTES = 20

_rng = random.SystemRandom()


def generate_code(length: int = CODE_LENGTH, alphabet: str = CODE_ALPHABET) -> str:
    """Return *length* characters drawn uniformly from *alphabet*."""
    return "".join(_rng.choice(alphabet) for _ in range(length))


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def issue_verification_code(
    session_factory: Callable[[], Session],
    user_id: UUID,
    mailer: Mailer,
    ttl_minutes: int = DEFAULT_TTL_MINUTES,
    log_code: bool = False,
) -> Optional[str]:
    """
    Replace the account's verification code and email the new one.

    Runs in its own database session so it can be handed to the task
    queue.  The account row is locked (``SELECT ... FOR UPDATE``) for the
    duration of the delete + insert, which serializes concurrent issuance
    for the same account.

    Returns the new code, or ``None`` if the account no longer exists.
    Delivery failures are logged and swallowed.
    """
    code = generate_code()
    expires_at = datetime.now(timezone.utc) + timedelta(minutes=ttl_minutes)

    with session_factory() as db, db.begin():
        user = db.execute(
            select(User).where(User.id == user_id).with_for_update()
        ).scalar_one_or_none()
        if user is None:
            logger.warning("Verification code requested for unknown user %s", user_id)
            return None

        db.execute(delete(VerificationCode).where(VerificationCode.user_id == user.id))
        record = VerificationCode(user_id=user.id, code=code, expires_at=expires_at)
        db.add(record)
        db.flush()
        log_code_issued(db, user_id=user.id, code_id=record.id)
        email = user.email

    if log_code:
        logger.info("Verification code for %s is: %s", email, code)

    try:
        mailer.send(
            email,
            {
                "subject": VERIFICATION_SUBJECT,
                "validation_code": code,
                "expires_in_minutes": ttl_minutes,
            },
        )
    except DeliveryError as exc:
        logger.warning("Verification email to %s not delivered, code stays valid: %s", email, exc)

    return code


def consume_verification_code(db: Session, user: User, code: str) -> User:
    """
    Check *code* against the account's live code and mark the email verified.

    Raises ``VerificationCodeError`` when there is no code, it does not
    match, or it has expired (an expired code is deleted).
    """
    if user.email_verified:
        return user

    record = db.execute(
        select(VerificationCode)
        .where(VerificationCode.user_id == user.id)
        .with_for_update()
    ).scalar_one_or_none()

    submitted = (code or "").strip()
    if record is None or not hmac.compare_digest(record.code.encode(), submitted.encode()):
        raise VerificationCodeError("invalid code")

    if _as_utc(record.expires_at) <= datetime.now(timezone.utc):
        db.delete(record)
        db.commit()
        raise VerificationCodeError("code expired")

    db.delete(record)
    user.email_verified = True
    log_email_verified(db, user_id=user.id)
    db.flush()
    logger.info("Email verified for user %s", user.id)
    return user
