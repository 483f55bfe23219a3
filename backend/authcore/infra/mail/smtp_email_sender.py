from __future__ import annotations

import logging
import smtplib
import ssl
from email.mime.text import MIMEText

from authcore.core.logger import redact_email
from authcore.services._shared.ports.notifier import EmailSender

log = logging.getLogger(__name__)


class SmtpEmailSender(EmailSender):
    """
    Plain-text email over SMTP (STARTTLS or implicit TLS).

    Transport errors are logged and reported as ``False``; the caller's
    delivery policy decides what a failed send means.
    """

    def __init__(
        self,
        *,
        host: str,
        port: int = 587,
        user: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        from_email: str,
        timeout: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.use_tls = use_tls
        self.from_email = from_email
        self.timeout = timeout

    def send(self, to: str, subject: str, body: str) -> bool:
        msg = MIMEText(body, "plain")
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = to
        context = ssl.create_default_context()

        try:
            if self.use_tls:
                with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                    server.starttls(context=context)
                    if self.user and self.password:
                        server.login(self.user, self.password)
                    server.sendmail(self.from_email, [to], msg.as_string())
            else:
                with smtplib.SMTP_SSL(
                    self.host, self.port, context=context, timeout=self.timeout
                ) as server:
                    if self.user and self.password:
                        server.login(self.user, self.password)
                    server.sendmail(self.from_email, [to], msg.as_string())
        except (smtplib.SMTPException, OSError):
            log.exception("SMTP delivery to %s failed", redact_email(to))
            return False

        log.info("Email sent to %s", redact_email(to), extra={"event": "email_sent"})
        return True


class LoggingEmailSender(EmailSender):
    """Development transport: logs that a message would be sent, never its body."""

    def send(self, to: str, subject: str, body: str) -> bool:
        log.info(
            "Email not sent (no SMTP configured): to=%s subject=%s",
            redact_email(to),
            subject,
            extra={"event": "email_dev_mode"},
        )
        return True
