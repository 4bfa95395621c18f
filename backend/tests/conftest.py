"""
Shared pytest fixtures for the auth backend test suite.

Uses a file-backed SQLite database per test (so background tasks can open
their own connections) with type adapters for PostgreSQL-specific column
types (JSONB → JSON, PG UUID → generic Uuid).
"""

import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import JSON, Uuid, create_engine
from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.orm import sessionmaker

from app.db.models import Base, User
from app.errors import DeliveryError
from app.mailer import Mailer
from app.passwords import hash_password
from app.resolver import CredentialResolver
from app.tasks import TaskQueue

TEST_PASSWORD = "secret123"


def _create_sqlite_engine(path):
    """Create a SQLite engine with PG type compatibility."""
    # Patch column types on the metadata (in-place) for SQLite DDL compat
    for table in Base.metadata.sorted_tables:
        for column in table.columns:
            if isinstance(column.type, JSONB):
                column.type = JSON()
            elif isinstance(column.type, PG_UUID):
                column.type = Uuid()

    engine = create_engine(
        f"sqlite:///{path}", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture()
def engine(tmp_path):
    engine = _create_sqlite_engine(tmp_path / "auth.db")
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture()
def db_session(session_factory):
    """SQLite session for unit tests."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def test_user(db_session):
    """Create, commit and return a password account."""
    user = User(
        id=uuid.uuid4(),
        email="a@x.com",
        password_hash=hash_password(TEST_PASSWORD),
        display_name="Test User",
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture()
def google_user(db_session):
    """Create, commit and return a Google-provisioned account."""
    user = User(
        id=uuid.uuid4(),
        email="g@x.com",
        password_hash=None,
        display_name="Google User",
        email_verified=True,
        is_google_signup=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


class RecordingMailer(Mailer):
    """Mailer that keeps sent messages in memory, optionally failing."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent = []

    def send(self, to_address, template_data):
        if self.fail:
            raise DeliveryError("relay unavailable")
        self.sent.append((to_address, dict(template_data)))


@pytest.fixture()
def mailer():
    return RecordingMailer()


@pytest.fixture()
def task_queue():
    queue = TaskQueue(max_workers=2)
    yield queue
    queue.shutdown(wait=True)


@pytest.fixture()
def resolver(task_queue, session_factory, mailer):
    return CredentialResolver(
        task_queue=task_queue,
        session_factory=session_factory,
        mailer=mailer,
        code_ttl_minutes=20,
    )


class FakeSettings:
    """Minimal settings object for JWT and app tests."""

    APP_ENV = "test"
    JWT_SECRET_KEY = "test-secret-key-for-tests-only-0123456789"
    JWT_ALGORITHM = "HS256"
    JWT_EXPIRY_DAYS = 7
    SESSION_EXPIRY_DAYS = 7
    GOOGLE_CLIENT_ID = "google-client-id"
    GOOGLE_CLIENT_SECRET = "google-client-secret"
    GOOGLE_REDIRECT_URI = "http://testserver/api/auth/google/callback"
    VERIFICATION_CODE_TTL_MINUTES = 20
    is_development = False
    google_configured = True


GOOGLE_PROFILES = {
    "tok-new": {"email": "New.Person@gmail.com", "name": "New Person", "email_verified": True},
    "tok-existing": {"email": "A@X.com", "name": "Someone Else", "email_verified": True},
    "tok-unverified": {"email": "u@x.com", "name": "Unverified", "email_verified": False},
}

GOOGLE_CODES = {
    "code-new": "tok-new",
    "code-existing": "tok-existing",
    "code-unverified": "tok-unverified",
}


def google_transport():
    """httpx transport answering Google's token and userinfo endpoints."""
    import httpx
    from urllib.parse import parse_qs

    from app.google_oauth import GOOGLE_TOKEN_URL, GOOGLE_USERINFO_URL

    def handler(request):
        url = str(request.url)
        if request.method == "POST" and url == GOOGLE_TOKEN_URL:
            form = parse_qs(request.content.decode())
            token = GOOGLE_CODES.get(form.get("code", [""])[0])
            if token is None:
                return httpx.Response(400, json={"error": "invalid_grant"})
            return httpx.Response(200, json={"access_token": token, "token_type": "Bearer"})
        if request.method == "GET" and url == GOOGLE_USERINFO_URL:
            token = request.headers.get("authorization", "").removeprefix("Bearer ")
            profile = GOOGLE_PROFILES.get(token)
            if profile is None:
                return httpx.Response(401, json={"error": "invalid_token"})
            return httpx.Response(200, json=profile)
        return httpx.Response(404)

    return httpx.MockTransport(handler)


@pytest.fixture()
def settings():
    return FakeSettings()


@pytest.fixture()
def api_app(settings, session_factory, resolver):
    """Application wired to the test database, mailer and queue (no lifespan)."""
    import httpx

    from app.config import get_settings
    from app.db.connection import get_db_session
    from app.main import create_app
    from app.rate_limit import login_limiter, signup_limiter, verify_limiter
    from app.strategies import build_authenticator

    for limiter in (login_limiter, signup_limiter, verify_limiter):
        limiter.reset()

    def _db_override():
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    application = create_app()
    application.dependency_overrides[get_settings] = lambda: settings
    application.dependency_overrides[get_db_session] = _db_override
    application.state.resolver = resolver
    application.state.authenticator = build_authenticator(
        settings, resolver, http=httpx.Client(transport=google_transport())
    )
    return application


@pytest.fixture()
def client(api_app):
    return TestClient(api_app)
