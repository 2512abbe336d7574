# core/codes.py

"""
Random identifiers handed out to humans: onboarding codes, OTPs,
replacement access codes and residence QR codes.
"""

import secrets
import string
from datetime import datetime, timedelta, timezone

# Excludes 0, O, 1 and I
ACCESS_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ACCESS_CODE_LENGTH = 8
ACCESS_CODE_TTL_DAYS = 7

OTP_ALPHABET = string.ascii_uppercase + string.digits
OTP_LENGTH = 6
OTP_TTL_MINUTES = 15

ONBOARDING_CODE_TTL_DAYS = 7

QR_CODE_PREFIX = "res_"
QR_CODE_LENGTH = 16
QR_ALPHABET = string.ascii_lowercase + string.digits


def _random(alphabet: str, length: int) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_onboarding_code() -> str:
    """6-digit numeric code emailed when a registration is approved."""
    return f"{secrets.randbelow(1_000_000):06d}"


def generate_otp() -> str:
    return _random(OTP_ALPHABET, OTP_LENGTH)


def generate_access_code() -> str:
    return _random(ACCESS_CODE_ALPHABET, ACCESS_CODE_LENGTH)


def generate_qr_code() -> str:
    return QR_CODE_PREFIX + _random(QR_ALPHABET, QR_CODE_LENGTH)


def normalize_otp(code: str) -> str:
    return (code or "").strip().upper()


def is_valid_otp_format(code: str) -> bool:
    return len(code) == OTP_LENGTH and code.isalnum() and code.isascii()


def expires_in(*, days: int = 0, minutes: int = 0) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days, minutes=minutes)).isoformat()
