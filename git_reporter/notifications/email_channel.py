"""SMTP email channel."""

from __future__ import annotations

import asyncio
import html
import logging
import re
import smtplib
from email.message import EmailMessage

from git_reporter.config import Settings, settings as default_settings
from git_reporter.notifications.channels import DispatchResult

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class EmailChannel:
    """Sends reports over SMTP.

    smtplib is blocking, so delivery runs in a worker thread.  With
    ``email_mock`` enabled the message is logged and not sent.
    """

    def __init__(self, config: Settings | None = None) -> None:
        self._config = config or default_settings

    @property
    def name(self) -> str:
        return "email"

    def _build_message(self, to: str, subject: str, body: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self._config.email_from or self._config.smtp_username
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(body)
        msg.add_alternative(
            f"<html><body>{html.escape(body).replace(chr(10), '<br>')}</body></html>",
            subtype="html",
        )
        return msg

    def _deliver(self, msg: EmailMessage) -> None:
        cfg = self._config
        with smtplib.SMTP(cfg.smtp_host, cfg.smtp_port, timeout=30) as server:
            if cfg.smtp_use_tls:
                server.starttls()
            if cfg.smtp_username:
                server.login(cfg.smtp_username, cfg.smtp_password)
            server.send_message(msg)

    async def send_email(self, to: str, subject: str, body: str) -> DispatchResult:
        """Send an email. Returns a failed DispatchResult on any error."""
        if not _EMAIL_RE.match(to or ""):
            logger.error("Refusing to send email to invalid address %r", to)
            return DispatchResult(
                ok=False, channel=self.name, recipient=to, error="invalid email address"
            )

        msg = self._build_message(to, subject, body)
        if self._config.email_mock:
            logger.info("EMAIL MOCK: to=%s subject=%r (%d chars)", to, subject, len(body))
            return DispatchResult(ok=True, channel=self.name, recipient=to, provider_id="mock")

        if not self._config.email_configured:
            logger.error("Email not configured; missing SMTP_USERNAME or SMTP_PASSWORD")
            return DispatchResult(
                ok=False, channel=self.name, recipient=to, error="email not configured"
            )

        try:
            await asyncio.to_thread(self._deliver, msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.exception("Email send failed to %s", to)
            return DispatchResult(ok=False, channel=self.name, recipient=to, error=str(exc))

        logger.info("Email sent to %s (%d chars)", to, len(body))
        return DispatchResult(ok=True, channel=self.name, recipient=to)
