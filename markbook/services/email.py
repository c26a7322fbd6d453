import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate
from html import escape
from typing import Iterable, Union

from markbook.core.config.settings import get_settings

logger = logging.getLogger(__name__)


def send_email(to_email: Union[str, Iterable[str]], subject: str, html_content: str) -> bool:
    """
    Send an HTML email using SMTP

    Args:
        to_email: Recipient email address, or several
        subject: Email subject
        html_content: HTML body of the email

    Returns:
        True if the message was handed to the SMTP server, False otherwise
    """
    settings = get_settings()
    recipients = [to_email] if isinstance(to_email, str) else list(to_email)
    if not recipients:
        return False
    if not settings.smtp_enabled:
        logger.info(f"SMTP not configured, skipped email '{subject}' to {', '.join(recipients)}")
        return False

    try:
        msg = MIMEMultipart()
        msg['From'] = formataddr((settings.SMTP_FROM_NAME, settings.SMTP_FROM_EMAIL))
        msg['To'] = ", ".join(recipients)
        msg['Subject'] = subject
        msg['Date'] = formatdate(localtime=True)

        # Attach HTML content
        msg.attach(MIMEText(html_content, 'html'))

        # Connect to SMTP server
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as server:
            if settings.SMTP_USE_TLS:
                server.starttls()
            if settings.SMTP_USER:
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD or "")
            server.sendmail(settings.SMTP_FROM_EMAIL, recipients, msg.as_string())

        logger.info(f"Sent email '{subject}' to {', '.join(recipients)}")
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send email '{subject}': {str(e)}", exc_info=True)
        return False


def _wrap(title: str, body: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="UTF-8">
        <title>{escape(title)}</title>
        <style>
            body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
            .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
            .header {{ background-color: #1f2e6a; color: white; padding: 10px; text-align: center; }}
            .content {{ padding: 20px; background-color: #f9f9f9; }}
            .footer {{ font-size: 12px; text-align: center; margin-top: 20px; color: #1f2e6a; }}
        </style>
    </head>
    <body>
        <div class="container">
            <div class="header">
                <h2>{escape(title)}</h2>
            </div>
            <div class="content">
                {body}
            </div>
            <div class="footer">
                <p>This is an automated message, please do not reply directly to this email.</p>
            </div>
        </div>
    </body>
    </html>
    """


def create_submission_email(student_name: str, class_code: str, course_name: str, unit_name: str, resubmission: bool) -> str:
    """
    Create HTML email content telling teachers a unit is ready for marking
    """
    kind = "resubmitted" if resubmission else "submitted"
    return _wrap(
        "Work ready for marking",
        f"""
        <p>{escape(student_name)} ({escape(class_code or 'N/A')}) has {kind} work for marking.</p>
        <p>Course: {escape(course_name)}<br>Unit: {escape(unit_name)}</p>
        <p>Please open the marking dashboard to review it.</p>
        """,
    )


def create_password_reset_request_email(user_name: str, email: str, class_code: str, timestamp: str) -> str:
    return _wrap(
        "Password reset request",
        f"""
        <p>A password reset has been requested.</p>
        <p>Name: {escape(user_name)}<br>
        Email: {escape(email)}<br>
        Class: {escape(class_code or 'N/A')}<br>
        Requested at: {escape(timestamp)}</p>
        <p>Please reset the password from the user manager and tell the student during lesson time.</p>
        """,
    )


def create_welcome_email(user_name: str, email: str, temp_password: str, login_url: str) -> str:
    return _wrap(
        "Welcome to Markbook",
        f"""
        <p>Hello {escape(user_name)},</p>
        <p>Your account has been created with the following credentials:</p>
        <p>Email: {escape(email)}<br>Password: {escape(temp_password)}</p>
        <p>Sign in at <a href="{escape(login_url)}">{escape(login_url)}</a> and change your password after logging in.</p>
        """,
    )
