"""
Backend configuration using pydantic-settings.

All settings can be overridden via environment variables or a .env file.
"""

from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


# Project root is two levels above this file: backend/app/config.py -> project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Backend configuration for the account authentication service."""

    model_config = SettingsConfigDict(
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ---------- Runtime ----------
    APP_ENV: str = "production"  # development / production / test

    # ---------- CORS ----------
    ALLOWED_ORIGINS: List[str] = ["*"]

    # ---------- Database ----------
    DATABASE_URL: Optional[str] = None  # takes precedence over the DB_* parts
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = "authkit"
    DB_PASSWORD: str = "authkit"
    DB_NAME: str = "authkit"

    # ---------- JWT / sessions ----------
    JWT_SECRET_KEY: str = ""
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRY_DAYS: int = 7
    SESSION_EXPIRY_DAYS: int = 7

    # ---------- Google OAuth ----------
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""
    GOOGLE_REDIRECT_URI: str = "http://localhost:8000/api/auth/google/callback"

    # ---------- Mail ----------
    SMTP_HOST: str = ""  # empty -> log codes instead of sending
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    MAIL_FROM: str = "team@remixkits.com"

    # ---------- Email verification ----------
    VERIFICATION_CODE_TTL_MINUTES: int = 20

    # ---------- Background work ----------
    TASK_QUEUE_WORKERS: int = 4

    @property
    def database_url(self) -> str:
        """Return ``DATABASE_URL`` or build a PostgreSQL URL for psycopg2."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

    @property
    def is_development(self) -> bool:
        return self.APP_ENV.lower() == "development"

    @property
    def google_configured(self) -> bool:
        return bool(self.GOOGLE_CLIENT_ID and self.GOOGLE_CLIENT_SECRET)


def get_settings() -> Settings:
    """Return a Settings instance."""
    return Settings()
