import smtplib
import ssl
import logging
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

from ...application.ports.notifier import Notifier
from ...config import Settings

logger = logging.getLogger(__name__)

_FOOTER = (
    '<p style="font-size:12px; color:#5f6368;">'
    "This is an automated message from <b>Samagra</b>. Please do not reply to this email."
    "</p>"
)


class EmailNotifier(Notifier):
    """Sends notifications over SMTP (SSL on port 465, STARTTLS otherwise)."""

    def __init__(self, settings: Settings):
        if not settings.email_configured:
            raise ValueError("SMTP settings are incomplete")
        self.smtp_server = settings.SMTP_SERVER
        self.smtp_port = int(settings.SMTP_PORT)
        self.smtp_username = settings.SMTP_USERNAME
        self.smtp_password = settings.SMTP_PASSWORD
        self.from_email = settings.FROM_EMAIL

    def notify(self, recipient: str, subject: str, body: str) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f'"Samagra" <{self.from_email}>'
        msg["To"] = recipient
        msg.attach(MIMEText(body + _FOOTER, "html"))

        context = ssl.create_default_context()
        if self.smtp_port == 465:
            with smtplib.SMTP_SSL(self.smtp_server, self.smtp_port, context=context, timeout=10) as server:
                server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)
        else:
            with smtplib.SMTP(self.smtp_server, self.smtp_port, timeout=10) as server:
                server.starttls(context=context)
                server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)
        logger.info(f"Email '{subject}' sent to {recipient}")
