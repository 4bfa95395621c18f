"""
Error taxonomy for the authentication core.

Every error raised towards a caller derives from ``AuthError`` and carries
the HTTP status the API layer maps it to.  ``app.main`` installs a single
exception handler that shapes these into JSON bodies.
"""

from __future__ import annotations

from typing import Dict, List, Optional


class AuthError(Exception):
    """Base class for errors surfaced by the authentication core."""

    status_code: int = 400
    public_message: str = "Authentication error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.public_message)
        self.message = message or self.public_message

    def to_dict(self) -> dict:
        return {"detail": self.message}


class ValidationError(AuthError):
    """Malformed or incomplete payload, with a per-field breakdown."""

    status_code = 422
    public_message = "Invalid payload"

    def __init__(
        self,
        fields: Dict[str, List[str]],
        message: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.fields = fields

    def to_dict(self) -> dict:
        return {"detail": self.message, "fields": self.fields}


class AuthenticationError(AuthError):
    """Wrong credentials.

    The message is fixed so that responses never reveal whether the email
    or the password was wrong.
    """

    status_code = 401
    public_message = "invalid credentials"

    def __init__(self) -> None:
        super().__init__(self.public_message)


class ConflictError(AuthError):
    """An account with this email already exists."""

    status_code = 409
    public_message = "An account with this email already exists"


class KeyDerivationError(AuthError):
    """The scrypt primitive failed (e.g. memory limit exceeded)."""

    status_code = 500
    public_message = "Internal error"

    def to_dict(self) -> dict:
        # The underlying cause stays in the server log.
        return {"detail": self.public_message}


class DeliveryError(AuthError):
    """The mailer could not hand the message off."""

    status_code = 502
    public_message = "Email delivery failed"


class VerificationCodeError(AuthError):
    """Submitted verification code is unknown, wrong or expired."""

    status_code = 400
    public_message = "invalid code"


class ProviderError(AuthError):
    """The external identity provider exchange failed."""

    status_code = 502
    public_message = "Identity provider error"
