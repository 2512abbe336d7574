# core/email_utils.py

"""
Transactional email templates. Each helper builds subject + bodies
and hands off to send_email_quietly, so callers never fail on SMTP.
"""

from typing import Optional

from core.config import settings
from core.notifications import send_email_quietly


def _html(title: str, paragraphs: list, highlight: Optional[str] = None) -> str:
    body = "".join(f"<p>{p}</p>" for p in paragraphs)
    if highlight:
        body += (
            '<p style="font-size:28px;font-weight:bold;letter-spacing:6px;'
            f'text-align:center;color:#1e40af">{highlight}</p>'
        )
    return f"<html><body><h2>{title}</h2>{body}<p>L'équipe SAKAN</p></body></html>"


# -----------------------------------------------------
# Payment receipt
# -----------------------------------------------------
def send_payment_receipt(to: str, residence_name: str, resident_name: str,
                         amount: float, receipt_number: str, pdf_bytes: Optional[bytes],
                         payment_id) -> bool:
    subject = f"Reçu de paiement - {residence_name}"
    lines = [
        f"Bonjour {resident_name or ''},",
        f"Nous confirmons la réception de votre paiement de {amount:.2f} MAD.",
        f"Numéro de reçu : {receipt_number}",
        "Vous trouverez votre reçu en pièce jointe.",
    ]
    attachments = None
    if pdf_bytes:
        attachments = [{
            "filename": f"Recu-Paiement-{payment_id}.pdf",
            "content": pdf_bytes,
            "mime": "application/pdf",
        }]
    return send_email_quietly(
        subject=subject,
        body="\n\n".join(lines),
        html_body=_html("Reçu de paiement", lines),
        to=to,
        attachments=attachments,
    )


# -----------------------------------------------------
# Registration flow
# -----------------------------------------------------
def send_registration_confirmation(to: str, full_name: str, residence_name: str, apartment_number: str) -> bool:
    lines = [
        f"Hello {full_name},",
        f"We received your registration request for apartment {apartment_number} at {residence_name}.",
        "Your syndic will review it shortly. You will receive an email once it has been processed.",
    ]
    return send_email_quietly(
        subject=f"Registration Received - {residence_name}",
        body="\n\n".join(lines),
        html_body=_html("Registration received", lines),
        to=to,
    )


def send_syndic_registration_notice(to: str, full_name: str, email: str, apartment_number: str,
                                    residence_name: str) -> bool:
    lines = [
        f"A new resident registration is waiting for your review at {residence_name}.",
        f"Name: {full_name}",
        f"Email: {email}",
        f"Apartment: {apartment_number}",
        f"Review it here: {settings.APP_URL}/app/registration-requests",
    ]
    return send_email_quietly(
        subject=f"New Resident Registration - Apt {apartment_number}",
        body="\n".join(lines),
        html_body=_html("New resident registration", lines),
        to=to,
    )


def send_welcome_code(to: str, full_name: str, residence_name: str, apartment_number: str, code: str) -> bool:
    lines = [
        f"Hello {full_name},",
        f"Your registration for apartment {apartment_number} at {residence_name} was approved.",
        "Open the SAKAN mobile app, enter your email and use this access code (valid 7 days):",
    ]
    return send_email_quietly(
        subject=f"Welcome to {residence_name} - Your Access Code Inside",
        body="\n\n".join(lines + [code]),
        html_body=_html(f"Welcome to {residence_name}", lines, highlight=code),
        to=to,
    )


def send_registration_rejection(to: str, full_name: str, residence_name: str, reason: str) -> bool:
    lines = [
        f"Hello {full_name},",
        f"Unfortunately your registration request at {residence_name} was not approved.",
        f"Reason: {reason}",
        "Please contact your syndic if you believe this is a mistake.",
    ]
    return send_email_quietly(
        subject=f"Registration Update - {residence_name}",
        body="\n\n".join(lines),
        html_body=_html("Registration update", lines),
        to=to,
    )


# -----------------------------------------------------
# Mobile OTP
# -----------------------------------------------------
def send_verification_code(to: str, code: str) -> bool:
    lines = [
        "Voici votre code de vérification SAKAN.",
        "Il expire dans 15 minutes.",
    ]
    return send_email_quietly(
        subject="Code de vérification SAKAN",
        body="\n\n".join(lines + [code]),
        html_body=_html("Code de vérification", lines, highlight=code),
        to=to,
    )


# -----------------------------------------------------
# Fee reminders
# -----------------------------------------------------
def reminder_subject(days_until_due: int, residence_name: str) -> str:
    if days_until_due > 0:
        return f"Rappel: Paiement dû dans {days_until_due} jour(s) - {residence_name}"
    if days_until_due == 0:
        return f"URGENT: Paiement dû aujourd'hui - {residence_name}"
    return f"URGENT: Paiement en retard - {residence_name}"


def send_fee_reminder(to: str, resident_name: str, residence_name: str, fee_title: str,
                      amount: float, due_date: str, days_until_due: int) -> bool:
    if days_until_due > 0:
        status_line = f"Ce paiement est dû dans {days_until_due} jour(s)."
    elif days_until_due == 0:
        status_line = "Ce paiement est dû aujourd'hui."
    else:
        status_line = f"Ce paiement est en retard de {abs(days_until_due)} jour(s)."

    lines = [
        f"Bonjour {resident_name or ''},",
        f"{fee_title} : {amount:.2f} MAD, échéance le {due_date}.",
        status_line,
    ]
    return send_email_quietly(
        subject=reminder_subject(days_until_due, residence_name),
        body="\n\n".join(lines),
        html_body=_html("Rappel de paiement", lines),
        to=to,
    )


# -----------------------------------------------------
# Syndic replacement
# -----------------------------------------------------
def send_replacement_code(to: str, residence_name: str, code: str, expires_at: str) -> bool:
    lines = [
        f"You have been designated as the new syndic of {residence_name}.",
        f"Use this code in the SAKAN app to take over the residence (expires {expires_at[:10]}):",
    ]
    return send_email_quietly(
        subject=f"Syndic access code - {residence_name}",
        body="\n\n".join(lines + [code]),
        html_body=_html("Syndic access code", lines, highlight=code),
        to=to,
    )
