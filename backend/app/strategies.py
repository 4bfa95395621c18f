"""
Authenticator and its strategies.

One ``Authenticator`` is built in the application lifespan and stored on
``app.state``; request handlers reach it through ``get_authenticator``.
Strategies are registered under a name and all return a ``User``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx
from fastapi import HTTPException, Request
from sqlalchemy.orm import Session

from app.config import Settings
from app.db.models import User
from app.google_oauth import GoogleOAuthClient, resolve_from_provider
from app.resolver import CredentialResolver

logger = logging.getLogger(__name__)

FORM_STRATEGY = "user-pass"
GOOGLE_STRATEGY = "google"


class Strategy:
    """Base class: turn request-supplied parameters into an account."""

    def authenticate(self, db: Session, **params: Any) -> User:
        raise NotImplementedError

    def close(self) -> None:
        """Release resources held by the strategy."""


class FormStrategy(Strategy):
    """Email + password login or signup."""

    def __init__(self, resolver: CredentialResolver) -> None:
        self.resolver = resolver

    def authenticate(self, db: Session, form: Any = None, **params: Any) -> User:
        return self.resolver.resolve(db, form)


class GoogleStrategy(Strategy):
    """Google OAuth: code -> profile -> find-or-create account."""

    def __init__(self, client: GoogleOAuthClient) -> None:
        self.client = client

    def authorization_url(self, state: str) -> str:
        return self.client.authorization_url(state)

    def authenticate(self, db: Session, code: str = "", **params: Any) -> User:
        profile = self.client.fetch_profile(code)
        return resolve_from_provider(db, profile)

    def close(self) -> None:
        self.client.close()


class Authenticator:
    """Registry of named strategies."""

    def __init__(self) -> None:
        self._strategies: Dict[str, Strategy] = {}

    def use(self, strategy: Strategy, name: str) -> "Authenticator":
        self._strategies[name] = strategy
        logger.debug("Registered auth strategy %s", name)
        return self

    def has(self, name: str) -> bool:
        return name in self._strategies

    def get(self, name: str) -> Strategy:
        try:
            return self._strategies[name]
        except KeyError:
            raise LookupError(f"No auth strategy registered as {name!r}") from None

    def authenticate(self, name: str, db: Session, **params: Any) -> User:
        return self.get(name).authenticate(db, **params)

    def close(self) -> None:
        for strategy in self._strategies.values():
            strategy.close()


def build_authenticator(
    settings: Settings,
    resolver: CredentialResolver,
    http: Optional[httpx.Client] = None,
) -> Authenticator:
    """Register the form strategy, plus Google when credentials are configured."""
    authenticator = Authenticator().use(FormStrategy(resolver), FORM_STRATEGY)
    if settings.google_configured:
        client = GoogleOAuthClient(
            client_id=settings.GOOGLE_CLIENT_ID,
            client_secret=settings.GOOGLE_CLIENT_SECRET,
            redirect_uri=settings.GOOGLE_REDIRECT_URI,
            http=http,
        )
        authenticator.use(GoogleStrategy(client), GOOGLE_STRATEGY)
    else:
        logger.warning("GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET not set; Google sign-in disabled")
    return authenticator


def get_authenticator(request: Request) -> Authenticator:
    """FastAPI dependency returning the process-wide authenticator."""
    authenticator = getattr(request.app.state, "authenticator", None)
    if authenticator is None:
        raise HTTPException(status_code=503, detail="Authentication is not configured")
    return authenticator
