"""Transactional email over the SendGrid v3 HTTP API."""

from dataclasses import dataclass
from html import escape
from typing import Optional

import httpx

from ..core.config import settings
from ..core.observability import get_logger

logger = get_logger(__name__)


class EmailDeliveryError(Exception):
    """Raised when the mail provider does not accept a message."""


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str


def _layout(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html><html><body style=\"font-family: sans-serif; color: #444;\">"
        f"<h2 style=\"color: #55c57a;\">{escape(title)}</h2>{body}"
        "<p>The Natours team</p></body></html>"
    )


def first_name(name: str) -> str:
    return name.split()[0] if name and name.split() else "there"


def welcome_email(to: str, name: str, url: str) -> EmailMessage:
    body = (
        f"<p>Hi {escape(first_name(name))},</p>"
        "<p>Welcome to Natours, we're glad to have you on board. "
        f"Start exploring our tours and <a href=\"{escape(url)}\">upload a profile photo</a>.</p>"
    )
    return EmailMessage(to=to, subject="Welcome to the Natours Family!", html=_layout("Welcome!", body))


def password_reset_email(to: str, name: str, url: str, expires_minutes: int) -> EmailMessage:
    body = (
        f"<p>Hi {escape(first_name(name))},</p>"
        "<p>Forgot your password? Submit a PATCH request with your new password and "
        f"password_confirm to: <a href=\"{escape(url)}\">{escape(url)}</a>.</p>"
        "<p>If you didn't forget your password, please ignore this email.</p>"
    )
    return EmailMessage(
        to=to,
        subject=f"Your password reset token (valid for {expires_minutes} min)",
        html=_layout("Reset your password", body),
    )


class EmailService:
    """Sends mail through SendGrid; delivery is skipped when no API key is configured."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        sender: Optional[str] = None,
        timeout: float = 10.0,
    ):
        self.api_key = api_key if api_key is not None else settings.sendgrid_api_key
        self.api_url = api_url or settings.sendgrid_api_url
        self.sender = sender or settings.email_from
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def send(self, message: EmailMessage) -> None:
        """
        Deliver one message.

        Raises:
            EmailDeliveryError: If SendGrid is unreachable or rejects the message
        """
        if not self.enabled:
            logger.info("email_delivery_disabled", to=message.to, subject=message.subject)
            return

        payload = {
            "personalizations": [{"to": [{"email": message.to}]}],
            "from": {"email": self.sender},
            "subject": message.subject,
            "content": [{"type": "text/html", "value": message.html}],
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except httpx.HTTPError as e:
            logger.error("email_transport_error", to=message.to, error=str(e))
            raise EmailDeliveryError(str(e)) from e

        if response.status_code >= 400:
            logger.error("email_rejected", to=message.to, status_code=response.status_code)
            raise EmailDeliveryError(f"SendGrid answered {response.status_code}")

        logger.info("email_sent", to=message.to, subject=message.subject)

    async def send_welcome(self, to: str, name: str, url: str) -> None:
        await self.send(welcome_email(to, name, url))

    async def send_password_reset(self, to: str, name: str, url: str) -> None:
        await self.send(password_reset_email(to, name, url, settings.password_reset_expires_minutes))
