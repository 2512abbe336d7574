# routers/mobile_auth.py

import re
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from core.codes import generate_otp, normalize_otp, is_valid_otp_format, expires_in, OTP_TTL_MINUTES
from core.email_utils import send_verification_code
from core.logging_config import logger
from core.rate_limiter import require_rate_limit
from core.supabase_client import get_supabase_client
from core.supabase_helpers import first_row
from core.utils import parse_datetime
from dependencies.auth import create_mobile_token

router = APIRouter(
    prefix="/mobile/auth",
    tags=["Mobile Auth"],
)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class EmailPayload(BaseModel):
    email: str


class VerifyOtpPayload(BaseModel):
    email: str
    code: str


def _normalize_email(email: str) -> str:
    email = (email or "").strip().lower()
    if not EMAIL_RE.match(email):
        raise HTTPException(400, "Invalid email address")
    return email


def _find_user(client, email: str):
    return first_row(
        client.table("users").select("id, email, name").eq("email", email).limit(1).execute()
    )


def _get_client():
    client = get_supabase_client()
    if not client:
        raise HTTPException(500, "Supabase client not configured")
    return client


# -------------------------------------------------------------
# POST /mobile/auth/check-email
# -------------------------------------------------------------
@router.post("/check-email")
def check_email(payload: EmailPayload, request: Request):
    require_rate_limit(request, "check_email", max_requests=20, window_seconds=60)
    email = _normalize_email(payload.email)
    client = _get_client()

    user = _find_user(client, email)
    if not user:
        return {"success": True, "data": {"exists": False, "hasOnboardingCode": False}}

    profile = first_row(
        client.table("profiles")
        .select("resident_onboarding_code, role")
        .eq("id", user["id"])
        .limit(1)
        .execute()
    ) or {}

    return {
        "success": True,
        "data": {
            "exists": True,
            "hasOnboardingCode": bool(profile.get("resident_onboarding_code")),
            "role": profile.get("role"),
        },
    }


# -------------------------------------------------------------
# POST /mobile/auth/verify-otp
# -------------------------------------------------------------
@router.post("/verify-otp")
def verify_otp(payload: VerifyOtpPayload, request: Request):
    require_rate_limit(request, "otp_verify", max_requests=5, window_seconds=300)
    email = _normalize_email(payload.email)
    code = normalize_otp(payload.code)

    if not is_valid_otp_format(code):
        raise HTTPException(400, "Code must be 6 letters or digits")

    client = _get_client()
    user = _find_user(client, email)
    if not user:
        raise HTTPException(404, "No account found for this email")

    profile = first_row(
        client.table("profiles").select("*").eq("id", user["id"]).limit(1).execute()
    )
    stored = normalize_otp((profile or {}).get("resident_onboarding_code"))
    if not profile or not stored or stored != code:
        logger.warning(f"Invalid OTP attempt for {email}")
        raise HTTPException(400, "Invalid verification code")

    expires_at = parse_datetime(profile.get("resident_onboarding_code_expires_at"))
    if expires_at and expires_at < datetime.now(timezone.utc):
        raise HTTPException(400, "Verification code has expired")

    try:
        client.table("profiles").update({
            "resident_onboarding_code": None,
            "resident_onboarding_code_expires_at": None,
            "verified": True,
            "email_verified": True,
        }).eq("id", user["id"]).execute()
        client.table("profile_residences").update({"verified": True}).eq("profile_id", user["id"]).execute()
    except Exception as e:
        raise HTTPException(500, f"Verification failed: {e}")

    token = create_mobile_token(user["id"], email)
    profile.pop("resident_onboarding_code", None)
    profile.pop("resident_onboarding_code_expires_at", None)

    return {
        "success": True,
        "data": {
            "access_token": token,
            "token_type": "bearer",
            "user": {**profile, "email": email, "verified": True},
        },
    }


# -------------------------------------------------------------
# POST /mobile/auth/resend-otp
# -------------------------------------------------------------
@router.post("/resend-otp")
def resend_otp(payload: EmailPayload, request: Request):
    require_rate_limit(request, "otp_resend", max_requests=3, window_seconds=300)
    email = _normalize_email(payload.email)
    client = _get_client()

    user = _find_user(client, email)
    if not user:
        raise HTTPException(404, "No account found for this email")

    link = first_row(
        client.table("profile_residences").select("id").eq("profile_id", user["id"]).limit(1).execute()
    )
    if not link:
        raise HTTPException(403, "This account is not linked to a residence")

    code = generate_otp()
    try:
        client.table("profiles").update({
            "resident_onboarding_code": code,
            "resident_onboarding_code_expires_at": expires_in(minutes=OTP_TTL_MINUTES),
        }).eq("id", user["id"]).execute()
    except Exception as e:
        raise HTTPException(500, f"Could not issue a new code: {e}")

    sent = send_verification_code(email, code)
    return {"success": True, "data": {"sent": sent, "expires_in_minutes": OTP_TTL_MINUTES}}
