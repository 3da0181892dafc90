"""
Outbound email notifications.

Delivery is best effort: every send returns True or False and never raises,
so a mail outage cannot fail registration, password reset or the expiry
sweep. Without an API key the message is logged as a preview instead.
"""

from html import escape
from typing import Optional, Protocol

import requests

from ..config import EmailConfig
from ..exceptions import ExternalServiceError
from ..utils.logger import get_logger


class NotificationSink(Protocol):
    def send_verification(self, email: str, token: str, handle: Optional[str]) -> bool: ...

    def send_password_reset(self, email: str, token: str, handle: Optional[str]) -> bool: ...

    def send_expiry_warning(self, email: str, handle: Optional[str], days_left: int) -> bool: ...


class EmailNotificationService:
    """NotificationSink backed by an HTTP email API."""

    def __init__(
        self,
        config: EmailConfig,
        http: Optional[requests.Session] = None,
        logger=None,
    ):
        self.config = config
        self.http = http or requests.Session()
        self.logger = logger or get_logger()

    def send_verification(self, email: str, token: str, handle: Optional[str] = None) -> bool:
        link = f"{self.config.app_url}/verify-email?token={token}"
        body = (
            f"<p>Hello {escape(handle or email)},</p>"
            f"<p>Confirm your email address to start your trial:</p>"
            f'<p><a href="{escape(link)}">{escape(link)}</a></p>'
            f"<p>The link expires in 24 hours.</p>"
        )
        return self._send(email, "Verify your email address", body, link=link)

    def send_password_reset(self, email: str, token: str, handle: Optional[str] = None) -> bool:
        link = f"{self.config.app_url}/reset-password?token={token}"
        body = (
            f"<p>Hello {escape(handle or email)},</p>"
            f"<p>Use the link below to choose a new password:</p>"
            f'<p><a href="{escape(link)}">{escape(link)}</a></p>'
            f"<p>The link expires in 1 hour. Ignore this email if you did not ask for it.</p>"
        )
        return self._send(email, "Reset your password", body, link=link)

    def send_expiry_warning(self, email: str, handle: Optional[str], days_left: int) -> bool:
        unit = "day" if days_left == 1 else "days"
        body = (
            f"<p>Hello {escape(handle or email)},</p>"
            f"<p>Your subscription expires in {days_left} {unit}. "
            f"Renew it to keep your gateway instances running.</p>"
        )
        return self._send(email, f"Your subscription expires in {days_left} {unit}", body)

    def _send(self, to: str, subject: str, html: str, link: Optional[str] = None) -> bool:
        if not self.config.api_key:
            self.logger.info(
                "Email API key not configured; logging email preview",
                extra={"to": to, "subject": subject, "link": link},
            )
            return True

        try:
            response = self.http.post(
                self.config.api_url,
                json={"from": self.config.from_email, "to": [to], "subject": subject, "html": html},
                headers={"Authorization": f"Bearer {self.config.api_key}"},
                timeout=self.config.timeout_seconds,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            # Constructing the error logs it; the sink itself never raises.
            ExternalServiceError(
                "Failed to send email", service_name="email", cause=e, to=to, subject=subject
            )
            return False

        self.logger.info("Email sent", extra={"to": to, "subject": subject})
        return True
