"""SMTP delivery of notification emails."""

from __future__ import annotations

import logging
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formataddr
from typing import Callable

from ..config import SmtpConfig

logger = logging.getLogger(__name__)

__all__ = ["SmtpMailer"]


class SmtpMailer:
    """Send multipart (text + HTML) messages over SMTP.

    Missing credentials put the mailer in a disabled state where :meth:`send`
    returns ``False`` without touching the network.
    """

    def __init__(
        self,
        config: SmtpConfig | None = None,
        *,
        smtp_factory: Callable[..., smtplib.SMTP] | None = None,
    ) -> None:
        self._config = config or SmtpConfig()
        if smtp_factory is None:
            smtp_factory = smtplib.SMTP_SSL if self._config.secure else smtplib.SMTP
        self._smtp_factory = smtp_factory
        if not self.enabled:
            logger.warning("SMTP credentials not configured. Email notifications will be disabled.")

    @property
    def enabled(self) -> bool:
        return self._config.has_credentials

    @property
    def sender(self) -> str:
        return formataddr((self._config.from_name, self._config.user or ""))

    def build_message(self, to_address: str, subject: str, html_body: str, text_body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to_address
        message["Subject"] = subject
        message.set_content(text_body)
        message.add_alternative(html_body, subtype="html")
        return message

    def send(self, to_address: str, subject: str, html_body: str, text_body: str) -> bool:
        if not self.enabled:
            logger.warning("Email transport not available. Skipping notification to %s", to_address)
            return False

        message = self.build_message(to_address, subject, html_body, text_body)
        try:
            with self._smtp_factory(
                self._config.host, self._config.port, timeout=self._config.timeout_seconds
            ) as smtp:
                if not self._config.secure:
                    smtp.starttls(context=ssl.create_default_context())
                smtp.login(self._config.user, self._config.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Error sending email to %s: %s", to_address, exc)
            return False

        logger.info("Email notification sent to %s: %s", to_address, subject)
        return True
