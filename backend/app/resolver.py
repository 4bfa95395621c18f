"""
Login/signup resolution for the email + password strategy.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Callable
from uuid import UUID

from sqlalchemy.orm import Session

from app.accounts import create_user, find_user_by_email
from app.db.models import User
from app.errors import AuthenticationError, ConflictError, ValidationError
from app.mailer import Mailer
from app.passwords import has_usable_password, hash_password, verify_password
from app.payloads import CredentialPayload, validate_payload
from app.tasks import TaskQueue
from app.verification import DEFAULT_TTL_MINUTES, issue_verification_code

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    # Verified against when the email is unknown, so that path costs one
    # scrypt derivation like a real mismatch does.
    return hash_password("not-a-real-password")


class CredentialResolver:
    """Authenticates existing accounts and provisions new ones."""

    def __init__(
        self,
        task_queue: TaskQueue,
        session_factory: Callable[[], Session],
        mailer: Mailer,
        code_ttl_minutes: int = DEFAULT_TTL_MINUTES,
        log_codes: bool = False,
    ) -> None:
        self.task_queue = task_queue
        self.session_factory = session_factory
        self.mailer = mailer
        self.code_ttl_minutes = code_ttl_minutes
        self.log_codes = log_codes

    def resolve(self, db: Session, data: Any) -> User:
        """
        Validate *data* as a credential payload and dispatch on its ``type``.

        Raises:
            ValidationError: the payload is malformed (per-field detail).
            AuthenticationError: login failed, for whatever reason.
            ConflictError: signup for an email that is already registered.
        """
        result = validate_payload(data)
        if not result.ok:
            logger.info("Credential payload rejected: %s", sorted(result.errors))
            raise ValidationError(fields=result.errors)

        payload = result.payload
        if payload.type == "login":
            return self.login(db, payload.email, payload.password)
        return self.signup(db, payload)

    def login(self, db: Session, email: str, password: str) -> User:
        user = find_user_by_email(db, email)
        if user is None:
            verify_password(password, _dummy_hash())
            raise AuthenticationError()

        # Accounts created through Google have no password to check.
        if not user.is_active or not has_usable_password(user.password_hash):
            raise AuthenticationError()

        if not verify_password(password, user.password_hash):
            raise AuthenticationError()

        user.last_login_at = datetime.now(timezone.utc)
        db.flush()
        return user

    def signup(self, db: Session, payload: CredentialPayload) -> User:
        if find_user_by_email(db, payload.email) is not None:
            raise ConflictError()

        user = create_user(
            db,
            email=payload.email,
            password_hash=hash_password(payload.password),
            display_name=payload.full_name,
            email_verified=False,
        )
        # The account must be visible to the issuing task's own session.
        db.commit()
        logger.info("Created account %s", user.id)

        self.send_verification_code(user.id)
        return user

    def send_verification_code(self, user_id: UUID) -> Future:
        """Queue verification-code issuance for *user_id* without waiting on it."""
        return self.task_queue.submit(
            "send_verification_code",
            issue_verification_code,
            self.session_factory,
            user_id,
            self.mailer,
            ttl_minutes=self.code_ttl_minutes,
            log_code=self.log_codes,
        )
