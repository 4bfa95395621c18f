"""
Google OAuth flow handling and provider-account resolution.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlencode

import httpx
from sqlalchemy.orm import Session

from app.accounts import upsert_user_by_email
from app.db.models import User
from app.errors import AuthenticationError, ProviderError

logger = logging.getLogger(__name__)

# Google OAuth endpoints
GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"


@dataclass(frozen=True)
class ProviderProfile:
    email: str
    display_name: Optional[str]
    email_verified: bool

    @classmethod
    def from_userinfo(cls, info: dict[str, Any]) -> "ProviderProfile":
        email = (info.get("email") or "").strip()
        if not email:
            raise ProviderError("Google profile has no email address")
        verified = info.get("email_verified", False)
        if isinstance(verified, str):
            verified = verified.lower() == "true"
        return cls(
            email=email,
            display_name=info.get("name") or None,
            email_verified=bool(verified),
        )


class GoogleOAuthClient:
    """Authorization-code exchange against Google's OAuth 2.0 endpoints."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        http: Optional[httpx.Client] = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self._http = http or httpx.Client(timeout=10.0)

    def authorization_url(self, state: Optional[str] = None) -> str:
        """
        Generate the Google OAuth consent URL.

        Args:
            state: Optional state parameter for CSRF protection
        """
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": "openid email profile",
        }
        if state:
            params["state"] = state
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    def exchange_code(self, code: str) -> dict:
        """Exchange an authorization code for tokens."""
        try:
            response = self._http.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": self.redirect_uri,
                },
            )
        except httpx.HTTPError as exc:
            raise ProviderError(f"Token exchange failed: {exc}") from exc

        if response.status_code != 200:
            raise ProviderError(f"Token exchange failed: {response.text}")
        return response.json()

    def fetch_userinfo(self, access_token: str) -> dict:
        """Get the user's profile from Google using an access token."""
        try:
            response = self._http.get(
                GOOGLE_USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.HTTPError as exc:
            raise ProviderError(f"Failed to get user info: {exc}") from exc

        if response.status_code != 200:
            raise ProviderError(f"Failed to get user info: {response.text}")
        return response.json()

    def fetch_profile(self, code: str) -> ProviderProfile:
        """Exchange *code* and return the resulting profile in one step."""
        tokens = self.exchange_code(code)
        access_token = tokens.get("access_token")
        if not access_token:
            raise ProviderError("Token response did not include an access token")
        return ProviderProfile.from_userinfo(self.fetch_userinfo(access_token))

    def close(self) -> None:
        self._http.close()


def resolve_from_provider(db: Session, profile: ProviderProfile) -> User:
    """
    Find-or-create the account for a Google profile.

    An existing account is returned as-is, even if the profile's name
    differs.  New accounts are marked verified and Google-provisioned and
    have no password hash.
    """
    if not profile.email_verified:
        logger.warning("Refusing Google sign-in with unverified email %s", profile.email)
        raise AuthenticationError()

    user = upsert_user_by_email(
        db,
        profile.email,
        display_name=profile.display_name,
        email_verified=True,
        is_google_signup=True,
        password_hash=None,
    )
    db.flush()
    return user
