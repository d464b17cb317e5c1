import logging
import smtplib
import ssl
from email.message import EmailMessage

from backend.core import config

logger = logging.getLogger(__name__)


class SmtpMailer:
    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        user: str | None = None,
        password: str | None = None,
        sender: str | None = None,
        use_tls: bool | None = None,
    ) -> None:
        self.host = config.SMTP_HOST if host is None else host
        self.port = config.SMTP_PORT if port is None else port
        self.user = config.SMTP_USER if user is None else user
        self.password = config.SMTP_PASSWORD if password is None else password
        self.sender = config.MAIL_FROM if sender is None else sender
        self.use_tls = config.SMTP_USE_TLS if use_tls is None else use_tls

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.port and self.sender)

    def build_message(self, recipient: str, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message['Subject'] = subject
        message['From'] = self.sender
        message['To'] = recipient
        message.set_content(body)
        return message

    def send(self, recipient: str, subject: str, body: str) -> bool:
        """Send one message. Returns False when the mailer is not configured."""
        if not self.is_configured:
            logger.warning('SMTP is not configured; skipping email to %s', recipient)
            return False

        message = self.build_message(recipient, subject, body)
        if self.port == 465:
            with smtplib.SMTP_SSL(self.host, self.port, context=ssl.create_default_context()) as server:
                self._login(server)
                server.send_message(message)
        else:
            with smtplib.SMTP(self.host, self.port) as server:
                if self.use_tls:
                    server.starttls(context=ssl.create_default_context())
                self._login(server)
                server.send_message(message)

        logger.info('Email sent to %s: %s', recipient, subject)
        return True

    def _login(self, server: smtplib.SMTP) -> None:
        if self.user and self.password:
            server.login(self.user, self.password)
