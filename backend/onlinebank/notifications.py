"""Outgoing email for OTPs, welcome messages and staff credentials.

When `SMTP_HOST` is not configured (the default for local runs and tests)
messages are written to the log instead of being sent.
"""

import logging
import smtplib
from collections import deque
from email.message import EmailMessage

from .config import settings

logger = logging.getLogger("onlinebank.email")


class EmailService:
    """Small SMTP sender with a log-only fallback."""

    def __init__(self, host: str = None, port: int = None, user: str = None, password: str = None, sender: str = None):
        self.host = settings.SMTP_HOST if host is None else host
        self.port = port or settings.SMTP_PORT
        self.user = settings.SMTP_USER if user is None else user
        self.password = settings.SMTP_PASSWORD if password is None else password
        self.sender = sender or settings.MAIL_FROM
        self.outbox = deque(maxlen=100)

    def send(self, to: str, subject: str, body: str) -> bool:
        """Send one plain-text email; returns False when delivery fails."""
        self.outbox.append({"to": to, "subject": subject, "body": body})
        if not self.host:
            logger.info("email (not sent, SMTP disabled) to=%s subject=%s", to, subject)
            logger.debug("email body: %s", body)
            return True
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(body)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=10) as smtp:
                smtp.starttls()
                if self.user:
                    smtp.login(self.user, self.password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError):
            logger.exception("failed to send email to %s", to)
            return False
        logger.info("email sent to=%s subject=%s", to, subject)
        return True

    def send_otp(self, to: str, code: str, purpose: str, valid_minutes: int) -> bool:
        body = (
            f"Your verification code for {purpose} is {code}.\n"
            f"It expires in {valid_minutes} minutes. Do not share it with anyone."
        )
        return self.send(to, "Online Bank - Verification Code", body)

    def send_welcome(self, to: str, full_name: str) -> bool:
        body = (
            f"Dear {full_name},\n\n"
            "Welcome to Online Bank. Your customer profile is ready; "
            "you can now sign in and open your first account."
        )
        return self.send(to, "Welcome to Online Bank", body)

    def send_employee_credentials(self, to: str, full_name: str, employee_code: str, temp_password: str) -> bool:
        body = (
            f"Dear {full_name},\n\n"
            f"Your staff account has been created.\n"
            f"Employee code: {employee_code}\n"
            f"Temporary password: {temp_password}\n\n"
            "Please change your password after your first login."
        )
        return self.send(to, "Online Bank - Staff Account Created", body)


email_service = EmailService()
