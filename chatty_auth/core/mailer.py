import logging

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from chatty_auth.core.config import Settings

logger = logging.getLogger(__name__)


def send_verification_email(settings: Settings, to_email: str, verification_url: str):
    """Send the email-verification link using SendGrid"""
    subject = "Verify your email - Chatty"
    html_content = f"""
    <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6;">
            <h2>Welcome to Chatty</h2>
            <p>Please verify your email to continue.</p>
            <p><a href="{verification_url}">Verify Email</a></p>
            <p>This link will expire in <b>{settings.verification_token_expire_minutes} minutes</b>.</p>
            <br>
            <p>If you did not create an account, please ignore this email.</p>
        </body>
    </html>
    """
    return _send(settings, to_email, subject, html_content, verification_url)


def send_reset_email(settings: Settings, to_email: str, reset_url: str):
    """Send the password reset link using SendGrid"""
    subject = "Reset your password - Chatty"
    html_content = f"""
    <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6;">
            <h2>Password Reset</h2>
            <p>We received a request to reset your password.</p>
            <p><a href="{reset_url}">Reset Password</a></p>
            <p>This link will expire in <b>{settings.reset_token_expire_minutes} minutes</b>.</p>
            <br>
            <p>If you did not request a password reset, please ignore this email.</p>
        </body>
    </html>
    """
    return _send(settings, to_email, subject, html_content, reset_url)


def _send(settings: Settings, to_email: str, subject: str, html_content: str, link: str) -> bool:
    if not settings.sendgrid_api_key or not settings.sendgrid_from_email:
        if settings.is_production:
            logger.warning("Email delivery not configured; dropped subject=%r to=%s", subject, to_email)
        else:
            # No provider in development, surface the link in the logs instead.
            logger.info("Email delivery disabled; subject=%r to=%s link=%s", subject, to_email, link)
        return False

    try:
        message = Mail(
            from_email=settings.sendgrid_from_email,
            to_emails=to_email,
            subject=subject,
            html_content=html_content,
        )

        sg = SendGridAPIClient(settings.sendgrid_api_key)
        response = sg.send(message)
        logger.info("Email sent subject=%r to=%s status=%s", subject, to_email, response.status_code)
        return True

    except Exception:
        # State is already committed; a lost email is recovered through resend.
        logger.exception("Failed to send email subject=%r to=%s", subject, to_email)
        return False
