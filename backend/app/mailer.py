"""
Outgoing mail.

``SmtpMailer`` hands messages to an SMTP relay; ``ConsoleMailer`` only logs
them and is used when no relay is configured.  Both render the
verification email from ``template_data``.
"""

from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, Optional

from app.config import Settings
from app.errors import DeliveryError

logger = logging.getLogger(__name__)

VERIFICATION_SUBJECT = "Verification code - RemixKits"


def render_verification_email(template_data: Dict[str, Any]) -> tuple[str, str]:
    """Return ``(text_body, html_body)`` for a verification-code email."""
    code = template_data["validation_code"]
    minutes = template_data.get("expires_in_minutes")
    expiry_line = f"The code expires in {minutes} minutes." if minutes else ""
    text_body = (
        "Welcome to RemixKits!\n\n"
        f"Your verification code is: {code}\n\n"
        f"{expiry_line}\n"
        "If you did not create an account, you can ignore this email.\n"
    )
    html_body = (
        "<p>Welcome to RemixKits!</p>"
        f"<p>Your verification code is: <strong>{code}</strong></p>"
        f"<p>{expiry_line}</p>"
        "<p>If you did not create an account, you can ignore this email.</p>"
    )
    return text_body, html_body


class Mailer:
    """Interface: deliver a templated message or raise ``DeliveryError``."""

    def send(self, to_address: str, template_data: Dict[str, Any]) -> None:
        raise NotImplementedError


class ConsoleMailer(Mailer):
    """Log-only mailer for development and for deployments without SMTP."""

    def send(self, to_address: str, template_data: Dict[str, Any]) -> None:
        logger.info("Email to %s not sent (no SMTP relay configured)", to_address)


class SmtpMailer(Mailer):
    """Send HTML + plain-text mail through an SMTP relay."""

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.timeout = timeout

    def _build_message(self, to_address: str, template_data: Dict[str, Any]) -> MIMEMultipart:
        text_body, html_body = render_verification_email(template_data)
        msg = MIMEMultipart("alternative")
        msg["Subject"] = template_data.get("subject", VERIFICATION_SUBJECT)
        msg["From"] = self.sender
        msg["To"] = to_address
        msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))
        return msg

    def send(self, to_address: str, template_data: Dict[str, Any]) -> None:
        msg = self._build_message(to_address, template_data)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                try:
                    # Attempt STARTTLS when supported; continue without if the server doesn't offer it.
                    server.starttls()
                except smtplib.SMTPNotSupportedError:
                    pass
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.sendmail(self.sender, [to_address], msg.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryError(f"SMTP delivery to {to_address} failed: {exc}") from exc
        logger.info("Sent email to %s", to_address)


def build_mailer(settings: Settings) -> Mailer:
    """Pick the mailer implementation from settings."""
    if not settings.SMTP_HOST:
        return ConsoleMailer()
    return SmtpMailer(
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        sender=settings.MAIL_FROM,
        username=settings.SMTP_USERNAME or None,
        password=settings.SMTP_PASSWORD or None,
    )
