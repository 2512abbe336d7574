# core/notifications.py

"""
Outgoing mail over SMTP (SSL). Templates live in core/email_utils.py.
"""

import smtplib
from email.message import EmailMessage
from typing import List, Optional

from core.config import settings
from core.logging_config import logger


def smtp_configured() -> bool:
    return all([settings.SMTP_HOST, settings.SMTP_PORT, settings.SMTP_USER, settings.SMTP_PASS])


def build_message(subject: str, body: str, recipients: List[str],
                  html_body: Optional[str] = None,
                  attachments: Optional[List[dict]] = None) -> EmailMessage:
    """
    Plain text with an optional HTML alternative. Attachments are dicts
    with `filename`, `content` (bytes) and optional `mime`.
    """
    msg = EmailMessage()
    msg["From"] = settings.SMTP_FROM or settings.SMTP_USER or ""
    msg["To"] = ", ".join(recipients)
    msg["Subject"] = subject

    msg.set_content(body)
    if html_body:
        msg.add_alternative(html_body, subtype="html")

    for attachment in attachments or []:
        maintype, _, subtype = attachment.get("mime", "application/octet-stream").partition("/")
        msg.add_attachment(
            attachment["content"],
            maintype=maintype,
            subtype=subtype or "octet-stream",
            filename=attachment["filename"],
        )
    return msg


def send_email(subject: str, body: str, to: str = None, recipients: Optional[List[str]] = None,
               attachments: Optional[List[dict]] = None, html_body: Optional[str] = None) -> bool:
    """
    False when skipped (no recipient, SMTP not configured).
    SMTP failures raise.
    """
    recipient_list = [r for r in (recipients or [to]) if r]
    if not recipient_list:
        logger.warning(f"Email '{subject}' has no recipient, skipped")
        return False
    if not smtp_configured():
        logger.warning(f"SMTP not configured, email '{subject}' skipped")
        return False

    msg = build_message(subject, body, recipient_list, html_body=html_body, attachments=attachments)
    with smtplib.SMTP_SSL(settings.SMTP_HOST, settings.SMTP_PORT) as server:
        server.login(settings.SMTP_USER, settings.SMTP_PASS)
        server.send_message(msg)

    logger.info(f"Email '{subject}' sent to {len(recipient_list)} recipient(s)")
    return True


def send_email_quietly(**kwargs) -> bool:
    """send_email() for side effects that must not fail the request."""
    try:
        return send_email(**kwargs)
    except Exception as e:
        logger.warning(f"Email '{kwargs.get('subject')}' not sent: {e}")
        return False
