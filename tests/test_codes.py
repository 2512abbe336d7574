# tests/test_codes.py

from datetime import datetime, timezone

from core.codes import (
    generate_access_code,
    generate_onboarding_code,
    generate_otp,
    generate_qr_code,
    normalize_otp,
    is_valid_otp_format,
    expires_in,
    ACCESS_CODE_ALPHABET,
)
from core.utils import parse_datetime


def test_access_codes_avoid_ambiguous_characters():
    for _ in range(50):
        code = generate_access_code()
        assert len(code) == 8
        assert set(code) <= set(ACCESS_CODE_ALPHABET)
        assert not set(code) & {"0", "O", "1", "I"}


def test_otp_and_onboarding_codes():
    assert is_valid_otp_format(generate_otp())
    code = generate_onboarding_code()
    assert len(code) == 6 and code.isdigit()
    assert normalize_otp(" ab12cd ") == "AB12CD"
    assert not is_valid_otp_format("AB12C")
    assert not is_valid_otp_format("AB 2CD")


def test_qr_code_prefix():
    code = generate_qr_code()
    assert code.startswith("res_")
    assert len(code) == 20


def test_expires_in_is_in_the_future():
    assert parse_datetime(expires_in(minutes=15)) > datetime.now(timezone.utc)
