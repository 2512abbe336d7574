# tests/test_notifications.py

from unittest.mock import patch

from core.config import settings
from core.notifications import build_message, send_email, send_email_quietly


def test_build_message_with_pdf_attachment():
    msg = build_message(
        "Reçu de paiement - Atlas",
        "Merci",
        ["resident@example.com"],
        html_body="<p>Merci</p>",
        attachments=[{"filename": "Recu-Paiement-7.pdf", "content": b"%PDF-1.4", "mime": "application/pdf"}],
    )

    assert msg["Subject"] == "Reçu de paiement - Atlas"
    attachments = list(msg.iter_attachments())
    assert len(attachments) == 1
    assert attachments[0].get_filename() == "Recu-Paiement-7.pdf"
    assert attachments[0].get_content_type() == "application/pdf"


def test_send_email_skipped_without_smtp(monkeypatch):
    monkeypatch.setattr(settings, "SMTP_HOST", None)
    with patch("core.notifications.smtplib.SMTP_SSL") as smtp:
        assert send_email(subject="Hi", body="x", to="a@example.com") is False
    smtp.assert_not_called()


def test_send_email_skipped_without_recipient():
    assert send_email(subject="Hi", body="x") is False


def test_quiet_send_swallows_smtp_errors(monkeypatch):
    for key, value in (("SMTP_HOST", "smtp.test"), ("SMTP_PORT", 465), ("SMTP_USER", "u"), ("SMTP_PASS", "p")):
        monkeypatch.setattr(settings, key, value)
    with patch("core.notifications.smtplib.SMTP_SSL", side_effect=OSError("connection refused")):
        assert send_email_quietly(subject="Hi", body="x", to="a@example.com") is False
