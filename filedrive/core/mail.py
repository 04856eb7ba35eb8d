# filedrive/core/mail.py
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from urllib.parse import quote

from filedrive.core.config import Settings
from filedrive.core.errors import FileDriveError

logger = logging.getLogger(__name__)

SMTP_TIMEOUT_SECONDS = 15


class MailDeliveryError(FileDriveError):
    """Raised when the SMTP server refuses or cannot take a message."""


class Mailer:
    """Sends account emails over SMTP.

    Without SMTP settings the message is only logged, which is enough for
    local development.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def configured(self) -> bool:
        s = self.settings
        return bool(s.smtp_host and s.smtp_port and s.smtp_user and s.smtp_password)

    def link(self, page: str, token: str) -> str:
        return f"{self.settings.base_url.rstrip('/')}/{page}?token={quote(token)}"

    def send_verification_email(self, to: str, token: str) -> None:
        link = self.link("verify-email", token)
        self.send(
            to,
            "Verify your email address",
            f"Please verify your email by visiting:\n\n{link}\n\n"
            "If you didn't request this, ignore this message.",
            f'<p>Click the link below to verify your email:</p>'
            f'<p><a href="{link}">{link}</a></p>'
            "<p>This link expires in 1 hour. If you didn't request this, ignore this email.</p>",
        )

    def send_password_reset_email(self, to: str, token: str) -> None:
        link = self.link("reset-password", token)
        self.send(
            to,
            "Password reset request",
            "You requested a password reset. Use the link below to reset your password:"
            f"\n\n{link}\n\nIf you didn't request this, ignore this email.",
            "<p>You requested a password reset. Click the link below to reset your password:</p>"
            f'<p><a href="{link}">{link}</a></p>'
            "<p>This link expires in 1 hour. If you didn't request this, ignore this email.</p>",
        )

    def send(self, to: str, subject: str, text: str, html: str) -> None:
        if not self.configured:
            logger.info("SMTP not configured; mail to %s not sent: %s\n%s", to, subject, text)
            return

        msg = MIMEMultipart("alternative")
        msg["From"] = self.settings.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.attach(MIMEText(text, "plain"))
        msg.attach(MIMEText(html, "html"))

        s = self.settings
        try:
            if s.smtp_port == 465:
                server = smtplib.SMTP_SSL(s.smtp_host, s.smtp_port, timeout=SMTP_TIMEOUT_SECONDS)
            else:
                server = smtplib.SMTP(s.smtp_host, s.smtp_port, timeout=SMTP_TIMEOUT_SECONDS)
            with server:
                if s.smtp_port != 465:
                    server.starttls()
                server.login(s.smtp_user, s.smtp_password)
                refused = server.sendmail(s.sender, [to], msg.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Sending '%s' to %s failed: %s", subject, to, exc)
            raise MailDeliveryError("Failed to send email") from exc

        if refused:
            logger.warning("Recipient rejected by SMTP provider: %s", refused)
            raise MailDeliveryError("Failed to send email")
        logger.info("Sent '%s' to %s", subject, to)
