"""Transactional email through Resend."""

import logging
from datetime import datetime
from html import escape
from typing import Dict, Optional, Tuple

import resend

import config

logger = logging.getLogger("aether")


def send_email(payload: Dict[str, object]) -> Tuple[bool, Optional[str]]:
    api_key = config.RESEND_API_KEY
    if not api_key:
        return False, "Resend API key is not configured."

    resend.api_key = api_key
    try:
        response = resend.Emails.send(payload)
    except Exception as exc:
        logger.error("Email send to %s failed: %s", payload.get("to"), exc)
        return False, str(exc)

    if not isinstance(response, dict) or not response.get("id"):
        return False, str(response)
    return True, None


def build_contact_confirmation_html(name: str, message: str) -> str:
    return f"""\
<div style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: auto;">
  <div style="background: #111; color: white; padding: 1.5rem; text-align: center;">
    <h1 style="margin: 0;">ÆTHER</h1>
    <p style="margin: 0;">Breathe the Vibe, Redefined for You</p>
  </div>
  <div style="padding: 1.5rem;">
    <h2>Hi {escape(name)},</h2>
    <p>Thank you for reaching out to <strong>ÆTHER</strong>. We've received your message and will get back to you as soon as possible.</p>
    <p><em>Your message:</em></p>
    <blockquote style="border-left: 4px solid #48d1cc; padding-left: 10px; color: #555;">{escape(message)}</blockquote>
  </div>
  <p style="text-align: center; font-size: 0.9rem; color: #555;">&copy; {datetime.now().year} ÆTHER. All rights reserved.</p>
</div>"""


def send_contact_emails(name: str, email: str, message: str) -> Tuple[bool, Optional[str]]:
    """Notify the store inbox, then confirm receipt to the sender."""
    admin_payload: Dict[str, object] = {
        "from": config.MAIL_FROM,
        "to": [config.CONTACT_INBOX],
        "reply_to": email,
        "subject": f"New Contact Form Submission from {name}",
        "text": f"Name: {name}\nEmail: {email}\nMessage: {message}",
    }
    ok, error = send_email(admin_payload)
    if not ok:
        return ok, error

    user_payload: Dict[str, object] = {
        "from": config.MAIL_FROM,
        "to": [email],
        "subject": "We've received your message!",
        "html": build_contact_confirmation_html(name, message),
        "text": f"Hi {name}, thank you for reaching out to ÆTHER. We'll get back to you soon.",
    }
    return send_email(user_payload)


def send_password_reset_email(recipient_email: str, reset_link: str) -> Tuple[bool, Optional[str]]:
    minutes = config.PASSWORD_RESET_EXPIRE_MINUTES
    payload: Dict[str, object] = {
        "from": config.MAIL_FROM,
        "to": [recipient_email],
        "subject": "Reset your ÆTHER password",
        "html": f'<p>Use the link below to reset your password within {minutes} minutes.</p><p><a href="{reset_link}">{reset_link}</a></p>',
        "text": f"Reset your ÆTHER password within {minutes} minutes: {reset_link}",
    }
    return send_email(payload)
