"""Tests for login/signup resolution."""

import re
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select

from app.db.models import User, VerificationCode
from app.errors import AuthenticationError, ConflictError, ValidationError
from app.verification import _as_utc

from conftest import TEST_PASSWORD


def _count_users(db, email_lower):
    return db.execute(
        select(func.count()).select_from(User).where(User.email_lower == email_lower)
    ).scalar_one()


class TestLogin:
    def test_login_with_correct_password(self, resolver, db_session, test_user):
        user = resolver.resolve(
            db_session, {"email": "a@x.com", "password": TEST_PASSWORD, "type": "login"}
        )
        assert str(user.id) == str(test_user.id)
        assert user.last_login_at is not None

    def test_login_email_is_case_insensitive(self, resolver, db_session, test_user):
        user = resolver.resolve(
            db_session, {"email": "  A@X.COM", "password": TEST_PASSWORD, "type": "login"}
        )
        assert str(user.id) == str(test_user.id)

    def test_wrong_password_fails_and_leaves_account_unchanged(self, resolver, db_session, test_user):
        before = (test_user.password_hash, test_user.email_verified, test_user.last_login_at)
        with pytest.raises(AuthenticationError):
            resolver.resolve(db_session, {"email": "a@x.com", "password": "wrong", "type": "login"})

        db_session.expire_all()
        reloaded = db_session.execute(select(User).where(User.email_lower == "a@x.com")).scalar_one()
        assert (reloaded.password_hash, reloaded.email_verified, reloaded.last_login_at) == before

    def test_unknown_email_and_wrong_password_look_the_same(self, resolver, db_session, test_user):
        with pytest.raises(AuthenticationError) as unknown:
            resolver.resolve(db_session, {"email": "nobody@x.com", "password": "x", "type": "login"})
        with pytest.raises(AuthenticationError) as wrong:
            resolver.resolve(db_session, {"email": "a@x.com", "password": "x", "type": "login"})

        assert type(unknown.value) is type(wrong.value)
        assert unknown.value.to_dict() == wrong.value.to_dict() == {"detail": "invalid credentials"}
        assert unknown.value.status_code == wrong.value.status_code == 401

    def test_google_account_cannot_log_in_with_password(self, resolver, db_session, google_user):
        with pytest.raises(AuthenticationError):
            resolver.resolve(db_session, {"email": "g@x.com", "password": "anything", "type": "login"})

    def test_inactive_account_cannot_log_in(self, resolver, db_session, test_user):
        test_user.is_active = False
        db_session.commit()
        with pytest.raises(AuthenticationError):
            resolver.resolve(db_session, {"email": "a@x.com", "password": TEST_PASSWORD, "type": "login"})


class TestSignup:
    def test_signup_creates_unverified_account_and_code(
        self, resolver, db_session, task_queue, mailer
    ):
        user = resolver.resolve(
            db_session, {"email": "a@x.com", "password": "secret123", "type": "signup"}
        )
        assert user.email_verified is False
        assert user.is_google_signup is False
        assert user.password_hash and "." in user.password_hash
        assert task_queue.drain(timeout=10)

        db_session.expire_all()
        code = db_session.execute(
            select(VerificationCode).where(VerificationCode.user_id == user.id)
        ).scalar_one()
        assert re.fullmatch(r"[0-9]{8}", code.code)
        assert _as_utc(code.expires_at) > datetime.now(timezone.utc)

        assert mailer.sent == [
            ("a@x.com", {
                "subject": "Verification code - RemixKits",
                "validation_code": code.code,
                "expires_in_minutes": 20,
            })
        ]

    def test_signup_keeps_display_name(self, resolver, db_session, task_queue):
        user = resolver.resolve(db_session, {
            "email": "b@x.com", "password": "secret123", "fullName": "Ada L", "type": "signup",
        })
        assert user.display_name == "Ada L"
        task_queue.drain(timeout=10)

    def test_duplicate_email_is_conflict(self, resolver, db_session, test_user):
        with pytest.raises(ConflictError):
            resolver.resolve(db_session, {"email": "A@x.com", "password": "other", "type": "signup"})
        assert _count_users(db_session, "a@x.com") == 1

    def test_signup_over_google_account_is_conflict(self, resolver, db_session, google_user):
        with pytest.raises(ConflictError):
            resolver.resolve(db_session, {"email": "g@x.com", "password": "pw", "type": "signup"})

    def test_signup_succeeds_when_delivery_fails(self, resolver, db_session, task_queue, mailer):
        mailer.fail = True
        user = resolver.resolve(
            db_session, {"email": "c@x.com", "password": "secret123", "type": "signup"}
        )
        assert task_queue.drain(timeout=10)
        assert mailer.sent == []

        db_session.expire_all()
        assert db_session.execute(
            select(VerificationCode).where(VerificationCode.user_id == user.id)
        ).scalar_one_or_none() is not None


class TestValidation:
    def test_empty_password_never_reaches_hasher(self, resolver, db_session, monkeypatch):
        from app import resolver as resolver_module

        def boom(_):
            raise AssertionError("hasher called")

        monkeypatch.setattr(resolver_module, "hash_password", boom)
        with pytest.raises(ValidationError) as exc_info:
            resolver.resolve(db_session, {"email": "a@x.com", "password": "", "type": "signup"})
        assert "password" in exc_info.value.fields

    def test_validation_error_has_field_breakdown(self, resolver, db_session):
        with pytest.raises(ValidationError) as exc_info:
            resolver.resolve(db_session, {"email": "a@x.com"})
        body = exc_info.value.to_dict()
        assert set(body["fields"]) == {"password", "type"}
        assert exc_info.value.status_code == 422
