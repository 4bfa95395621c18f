"""
Database connection factory.

Provides engine creation, the session factory handed to background work,
and a FastAPI-compatible ``get_db_session()`` dependency.
"""

from functools import lru_cache
from typing import Generator

from sqlalchemy import create_engine, Engine
from sqlalchemy.orm import Session, sessionmaker

from app.config import get_settings


@lru_cache()
def get_engine() -> Engine:
    """
    Create and cache a SQLAlchemy Engine.

    PostgreSQL (psycopg2) gets a bounded connection pool; SQLite URLs are
    accepted for local development.
    """
    settings = get_settings()
    url = settings.database_url
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_timeout=10,
    )


@lru_cache()
def get_session_factory() -> sessionmaker[Session]:
    """Return a cached ``sessionmaker`` bound to the application engine."""
    return sessionmaker(bind=get_engine(), expire_on_commit=False)


def get_db_session() -> Generator[Session, None, None]:
    """
    FastAPI dependency that yields a SQLAlchemy ``Session``.

    Usage in a route::

        @router.get("/foo")
        def foo(db: Session = Depends(get_db_session)):
            ...
    """
    factory = get_session_factory()
    session: Session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
