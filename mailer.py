import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage
from typing import Optional

import config
from errors import UpstreamError
from logs import get_logger

log = get_logger(__name__)


class Mailer(ABC):
    @abstractmethod
    def send(self, to: str, subject: str, body: str) -> None:
        raise NotImplementedError


class SmtpMailer(Mailer):
    def __init__(self, host: Optional[str] = None, port: Optional[int] = None,
                 user: Optional[str] = None, password: Optional[str] = None,
                 sender: Optional[str] = None, starttls: Optional[bool] = None):
        self.host = host or config.SMTP_HOST
        self.port = port or config.SMTP_PORT
        self.user = user or config.SMTP_USER
        self.password = password or config.SMTP_PASSWORD
        self.sender = sender or config.SMTP_FROM
        self.starttls = config.SMTP_STARTTLS if starttls is None else starttls

    def send(self, to, subject, body):
        if not self.host:
            raise UpstreamError("Failed to send email", cause=RuntimeError("SMTP is not configured"))

        msg = EmailMessage()
        msg["From"] = self.sender or self.user or "no-reply@localhost"
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(body)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=30) as smtp:
                if self.starttls:
                    smtp.starttls()
                if self.user and self.password:
                    smtp.login(self.user, self.password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            log.error("mail_send_failed", error=str(exc))
            raise UpstreamError("Failed to send email", cause=exc) from exc
        log.info("mail_sent", subject=subject)


_mailer: Optional[Mailer] = None


def get_mailer() -> Mailer:
    global _mailer
    if _mailer is None:
        _mailer = SmtpMailer()
    return _mailer
