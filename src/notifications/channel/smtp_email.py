"""SMTP email adapter for production dispatch."""

import smtplib
from email.message import EmailMessage
from email.utils import make_msgid

import structlog
from pydantic_settings import BaseSettings, SettingsConfigDict

from notifications.channel.email_port import EmailPort, EmailReceipt

logger = structlog.get_logger(__name__)


class SmtpSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SMTP_")

    host: str = "smtp.gmail.com"
    port: int = 587
    username: str = ""
    password: str = ""
    sender: str = ""
    sender_name: str = "Crunchstream Orders"
    use_tls: bool = True
    timeout: float = 10.0


class SmtpEmailAdapter(EmailPort):
    """Sends each message over a fresh SMTP connection."""

    def __init__(self, settings: SmtpSettings) -> None:
        if not settings.host or not settings.sender:
            raise ValueError("SMTP host and sender address are required")
        self._settings = settings

    def _message(self, to: str, subject: str, body: str, html_body: str | None) -> EmailMessage:
        message = EmailMessage()
        message["From"] = f"{self._settings.sender_name} <{self._settings.sender}>"
        message["To"] = to
        message["Subject"] = subject
        message["Message-ID"] = make_msgid()
        message.set_content(body)
        if html_body:
            message.add_alternative(html_body, subtype="html")
        return message

    def send(
        self,
        to: str,
        subject: str,
        body: str,
        html_body: str | None = None,
    ) -> EmailReceipt:
        message = self._message(to, subject, body, html_body)
        settings = self._settings
        try:
            with smtplib.SMTP(settings.host, settings.port, timeout=settings.timeout) as server:
                if settings.use_tls:
                    server.starttls()
                if settings.username:
                    server.login(settings.username, settings.password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("SMTP delivery failed", to=to, subject=subject, error=str(exc))
            return EmailReceipt.refused(str(exc))

        logger.info("Email sent", to=to, subject=subject)
        return EmailReceipt.accepted(message["Message-ID"])
