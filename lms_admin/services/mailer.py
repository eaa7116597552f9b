from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr

from starlette.concurrency import run_in_threadpool

from lms_admin.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class Mailer:
    """SMTP sender. `send` never raises; it returns whether the message went out."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def build_message(self, to_email: str, to_name: str, subject: str, html: str, text: str) -> EmailMessage:
        s = self.settings
        msg = EmailMessage()
        msg["From"] = formataddr((s.mail_from_name, s.mail_from_address))
        msg["To"] = formataddr((to_name, to_email))
        msg["Subject"] = subject
        msg.set_content(text)
        msg.add_alternative(html, subtype="html")
        return msg

    def _send_sync(self, msg: EmailMessage) -> None:
        s = self.settings
        with smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=15) as server:
            if s.smtp_starttls:
                server.starttls()
            server.login(s.smtp_username, s.smtp_password)
            server.send_message(msg)

    async def send(self, to_email: str, to_name: str, subject: str, html: str, text: str) -> bool:
        if not self.settings.smtp_configured:
            logger.error("Email configuration missing, not sending '%s' to %s", subject, to_email)
            return False

        msg = self.build_message(to_email, to_name, subject, html, text)
        try:
            await run_in_threadpool(self._send_sync, msg)
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send email to %s: %s", to_email, e)
            return False
