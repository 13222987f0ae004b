"""Outbound email for invitation delivery."""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

from starlette.concurrency import run_in_threadpool

from dutylog.core.config import Settings, get_settings
from dutylog.core.structured_logging import log_json

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Raised when a message could not be handed to the SMTP server."""


class Mailer:
    """SMTP sender; blocking ``smtplib`` calls run in a worker thread."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def _build_message(self, to_email: str, subject: str, body: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.settings.smtp_from
        msg["To"] = to_email
        msg.set_content(body)
        return msg

    def _send_sync(self, msg: EmailMessage) -> None:
        s = self.settings
        with smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=10) as smtp:
            if s.smtp_use_tls:
                smtp.starttls()
            if s.smtp_user:
                smtp.login(s.smtp_user, s.smtp_password)
            smtp.send_message(msg)

    async def send(self, to_email: str, subject: str, body: str) -> None:
        """Send a plain-text email.

        Raises:
            EmailDeliveryError: If the SMTP exchange fails
        """
        msg = self._build_message(to_email, subject, body)
        try:
            await run_in_threadpool(self._send_sync, msg)
        except (smtplib.SMTPException, OSError) as exc:
            log_json(
                logger,
                logging.ERROR,
                "email_send_failed",
                to=to_email,
                subject=subject,
                error=str(exc)[:400],
            )
            raise EmailDeliveryError(str(exc)[:400]) from exc

        log_json(logger, logging.INFO, "email_sent", to=to_email, subject=subject)

    async def send_invitation(self, to_email: str, organization_name: str, link: str) -> None:
        subject = f"You've been invited to join {organization_name} on DutyLog"
        body = (
            f"You have been invited to join {organization_name} on DutyLog.\n\n"
            f"Accept the invitation here:\n{link}\n\n"
            "If you were not expecting this invitation you can ignore this email."
        )
        await self.send(to_email, subject, body)


def invitation_link(token: str, settings: Settings | None = None) -> str:
    s = settings or get_settings()
    return f"{s.app_url.rstrip('/')}/accept-invite/{token}"


def get_mailer() -> Mailer:
    """FastAPI dependency returning the configured mailer."""
    return Mailer()
