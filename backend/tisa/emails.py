"""Outgoing email used to deliver registration verification codes.

Two senders exist: `SmtpEmailSender` delivers through an SMTP relay and
`ConsoleEmailSender` only logs the message, which is the default for
local development. `get_email_sender` is the FastAPI dependency that
picks one from settings; tests replace it through
`app.dependency_overrides`.
"""

import logging
import smtplib
from email.message import EmailMessage

from .config import settings

logger = logging.getLogger("tisa.email")

VERIFICATION_SUBJECT = "Project Tisa: confirm your email"


def _verification_body(code: str) -> str:
    return (
        f"Your verification code is {code}.\n\n"
        "Enter it to finish creating your account. If you did not request "
        "an account you can ignore this message."
    )


class EmailSender:
    """Base sender; subclasses implement `send`."""

    def send(self, to: str, subject: str, body: str) -> None:
        raise NotImplementedError

    def send_email_code(self, to: str, code: str) -> None:
        self.send(to, VERIFICATION_SUBJECT, _verification_body(code))


class ConsoleEmailSender(EmailSender):
    def send(self, to: str, subject: str, body: str) -> None:
        logger.info("email to=%s subject=%r\n%s", to, subject, body)


class SmtpEmailSender(EmailSender):
    """Deliver mail over SMTP, upgrading with STARTTLS when configured."""

    def __init__(self, host: str, port: int, sender: str, username: str = "", password: str = "", use_tls: bool = True):
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls

    def send(self, to: str, subject: str, body: str) -> None:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(body)
        with smtplib.SMTP(self.host, self.port, timeout=30) as server:
            if self.use_tls:
                server.starttls()
            if self.username:
                server.login(self.username, self.password)
            server.send_message(msg)
        logger.info("email sent to=%s subject=%r", to, subject)


def get_email_sender() -> EmailSender:
    """Return the sender configured by `EMAIL_BACKEND`."""
    if settings.EMAIL_BACKEND == "smtp":
        return SmtpEmailSender(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            sender=settings.EMAIL_FROM,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            use_tls=settings.SMTP_USE_TLS,
        )
    return ConsoleEmailSender()
