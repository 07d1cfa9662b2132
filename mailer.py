"""Outbound email for password resets."""
import logging
import smtplib
from email.message import EmailMessage

from config import SMTP_HOST, SMTP_PORT, EMAIL_USERNAME, EMAIL_PASSWORD, EMAIL_FROM, RESET_TOKEN_EXPIRE_MINUTES

logger = logging.getLogger(__name__)


def email_configured() -> bool:
    return bool(EMAIL_USERNAME and EMAIL_PASSWORD)


def send_password_reset(to_address: str, reset_url: str) -> None:
    """Send the reset link. SMTP errors propagate to the caller."""
    msg = EmailMessage()
    msg["Subject"] = "Password Reset Request"
    msg["From"] = EMAIL_FROM
    msg["To"] = to_address
    msg.set_content(
        f"You requested a password reset. Open the link below to choose a new password:\n\n"
        f"{reset_url}\n\n"
        f"This link will expire in {RESET_TOKEN_EXPIRE_MINUTES} minutes.\n"
        f"If you didn't request this, please ignore this email."
    )
    msg.add_alternative(
        f"<h1>Password Reset Request</h1>"
        f"<p>You requested a password reset. Please click the link below to reset your password:</p>"
        f'<a href="{reset_url}">Reset Password</a>'
        f"<p>This link will expire in {RESET_TOKEN_EXPIRE_MINUTES} minutes.</p>"
        f"<p>If you didn't request this, please ignore this email.</p>",
        subtype="html",
    )

    with smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=30) as server:
        server.starttls()
        server.login(EMAIL_USERNAME, EMAIL_PASSWORD)
        server.send_message(msg)
    logger.info("Password reset email sent to %s", to_address)
