"""Outbound mail.

``send`` is fire-and-forget: the message is handed to a worker thread and the
caller never sees delivery errors. Failures are logged.
"""

import logging
import smtplib
from concurrent.futures import Future, ThreadPoolExecutor
from email.message import EmailMessage

from portal.config import get_settings

logger = logging.getLogger("ivory_portal")


class Mailer:
    """Base mailer. Subclasses implement ``deliver``."""

    def __init__(self, sender: str, executor: ThreadPoolExecutor | None = None) -> None:
        self.sender = sender
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="mailer")

    def deliver(self, to_email: str, subject: str, body: str) -> None:
        raise NotImplementedError

    def send(self, to_email: str, subject: str, body: str) -> Future:
        """Queue a message for delivery without waiting for it."""
        return self._executor.submit(self._deliver_quietly, to_email, subject, body)

    def _deliver_quietly(self, to_email: str, subject: str, body: str) -> None:
        try:
            self.deliver(to_email, subject, body)
        except Exception:
            logger.exception("Mail delivery to %s failed (subject=%r)", to_email, subject)


class SMTPMailer(Mailer):
    """Delivers through an SMTP relay."""

    def __init__(
        self,
        sender: str,
        host: str,
        port: int = 587,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        executor: ThreadPoolExecutor | None = None,
    ) -> None:
        super().__init__(sender, executor)
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls

    def deliver(self, to_email: str, subject: str, body: str) -> None:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.set_content(body)

        server = smtplib.SMTP(self.host, self.port, timeout=20)
        try:
            if self.use_tls:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(msg)
        finally:
            try:
                server.quit()
            except smtplib.SMTPException:
                pass
        logger.info("Mail sent to %s: %s", to_email, subject)


class LoggingMailer(Mailer):
    """Writes messages to the log instead of sending them (no SMTP configured)."""

    def deliver(self, to_email: str, subject: str, body: str) -> None:
        logger.info("MAIL to=%s subject=%r\n%s", to_email, subject, body)


_mailer: Mailer | None = None


def get_mailer() -> Mailer:
    """Get singleton mailer instance, SMTP when a host is configured."""
    global _mailer
    if _mailer is None:
        settings = get_settings()
        if settings.SMTP_HOST:
            _mailer = SMTPMailer(
                sender=settings.MAIL_FROM,
                host=settings.SMTP_HOST,
                port=settings.SMTP_PORT,
                username=settings.SMTP_USERNAME,
                password=settings.SMTP_PASSWORD,
                use_tls=settings.SMTP_USE_TLS,
            )
        else:
            _mailer = LoggingMailer(sender=settings.MAIL_FROM)
    return _mailer
