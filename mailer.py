"""
mailer.py — Transactional email through the SendGrid v3 REST API.
"""

import httpx

from config import get_settings
from errors import AppError, ErrorKind
from utils import logger

SENDGRID_SEND_URL = "https://api.sendgrid.com/v3/mail/send"


def send_email(to: str, subject: str, html: str) -> None:
    settings = get_settings()
    if not settings.SENDGRID_API_KEY:
        raise AppError("Email provider is not configured", ErrorKind.UPSTREAM_UNAVAILABLE)

    payload = {
        "personalizations": [{"to": [{"email": to}]}],
        "from": {"email": settings.SENDGRID_FROM_EMAIL},
        "subject": subject,
        "content": [{"type": "text/html", "value": html}],
    }
    try:
        response = httpx.post(
            SENDGRID_SEND_URL,
            json=payload,
            headers={"Authorization": f"Bearer {settings.SENDGRID_API_KEY}"},
            timeout=10.0,
        )
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error("Email delivery to %s failed: %s", to, e)
        raise AppError("Failed to send email", ErrorKind.UPSTREAM_UNAVAILABLE) from e
    logger.info("Email '%s' sent to %s", subject, to)


def send_password_reset_email(to: str, reset_url: str, name: str = "User") -> None:
    html = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h2>Hello {name},</h2>
      <p>We received a request to reset your password. If you didn't make this request,
         you can safely ignore this email.</p>
      <p><a href="{reset_url}">Reset Password</a></p>
      <p>This link expires in {get_settings().RESET_TOKEN_TTL_MINUTES} minutes.</p>
    </div>
    """
    send_email(to, "Password Reset Request", html)


def send_welcome_email(to: str, name: str = "there") -> None:
    html = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h2>Welcome, {name}!</h2>
      <p>Your account is ready. Upload a resume, paste a job description and get an
         instant match score with suggestions to improve it.</p>
      <p><a href="{get_settings().FRONTEND_URL}">Get started</a></p>
    </div>
    """
    send_email(to, "Welcome to Resume Analyzer!", html)
