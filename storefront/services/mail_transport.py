"""
Mail transports: console (development) and SMTP
"""
import logging
import smtplib
import uuid
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import Protocol

from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from storefront.config import Settings

logger = logging.getLogger(__name__)

TRANSIENT_SMTP_ERRORS = (
    smtplib.SMTPServerDisconnected,
    smtplib.SMTPConnectError,
    ConnectionError,
    TimeoutError,
)


class MailTransport(Protocol):
    configured: bool

    def send(self, message: EmailMessage) -> str:
        """Deliver the message and return its message id"""
        ...


class ConsoleTransport:
    """Simulate email sending by writing to the log"""

    configured = True

    def send(self, message: EmailMessage) -> str:
        message_id = message.get("Message-ID") or f"<console-{uuid.uuid4()}@localhost>"
        logger.info(
            "EMAIL NOTIFICATION (console mode)\nTo: %s\nSubject: %s\n%s",
            message["To"],
            message["Subject"],
            message.get_body(preferencelist=("plain",)).get_content(),
        )
        return message_id


class SmtpTransport:
    """Send email through an SMTP relay with STARTTLS"""

    def __init__(self, settings: Settings):
        self.host = settings.SMTP_HOST
        self.port = settings.SMTP_PORT
        self.user = settings.SMTP_USER
        self.password = settings.SMTP_PASS
        self.use_tls = settings.SMTP_USE_TLS
        self.timeout = 10.0
        self.max_retries = settings.MAX_RETRIES
        self.retry_delay = settings.RETRY_DELAY

    @property
    def configured(self) -> bool:
        return bool(self.user and self.password)

    def send(self, message: EmailMessage) -> str:
        if not message.get("Message-ID"):
            message["Message-ID"] = make_msgid(domain=self.host)

        retrying = retry(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.retry_delay, min=1, max=10),
            retry=retry_if_exception_type(TRANSIENT_SMTP_ERRORS),
            reraise=True
        )
        retrying(self._deliver)(message)
        return message["Message-ID"]

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            server.login(self.user, self.password)
            server.send_message(message)


def build_mail_transport(settings: Settings) -> MailTransport:
    if settings.EMAIL_SERVICE == "smtp":
        return SmtpTransport(settings)
    if settings.EMAIL_SERVICE != "console":
        logger.warning("Unknown email service '%s', falling back to console", settings.EMAIL_SERVICE)
    return ConsoleTransport()


def sender_address(settings: Settings) -> str:
    return formataddr((settings.MAIL_FROM_NAME, settings.SMTP_USER or "no-reply@dvitgolf.com"))
