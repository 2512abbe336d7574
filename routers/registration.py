# routers/registration.py

from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Request, Query

from core.codes import generate_onboarding_code, expires_in, ONBOARDING_CODE_TTL_DAYS
from core.email_utils import (
    send_registration_confirmation,
    send_syndic_registration_notice,
    send_welcome_code,
    send_registration_rejection,
)
from core.logging_config import logger
from core.permission_helpers import require_syndic_residence
from core.rate_limiter import require_rate_limit, get_rate_limit_identifier
from core.supabase_client import get_supabase_client
from core.supabase_helpers import first_row, create_auth_user, best_effort
from core.utils import utc_now_iso
from dependencies.auth import get_current_user, CurrentUser
from models.registration import RegistrationSubmit, RegistrationReject

router = APIRouter(tags=["Registration"])

REQUIRED_FIELDS = ["residence_id", "full_name", "email", "phone_number", "apartment_number"]
MIN_REJECTION_REASON = 10


# ============================================================
# Duplicate checks shared by submit and approve
# ============================================================
def verified_resident_email(client, residence_id: int, email: str) -> bool:
    user = first_row(client.table("users").select("id").eq("email", email).limit(1).execute())
    if not user:
        return False
    link = first_row(
        client.table("profile_residences").select("id")
        .eq("residence_id", residence_id).eq("profile_id", user["id"]).eq("verified", True)
        .limit(1).execute()
    )
    return bool(link)


def apartment_occupied(client, residence_id: int, apartment_number: str) -> bool:
    link = first_row(
        client.table("profile_residences").select("id")
        .eq("residence_id", residence_id).eq("apartment_number", apartment_number).eq("verified", True)
        .limit(1).execute()
    )
    return bool(link)


def _residence(client, residence_id) -> dict:
    residence = first_row(
        client.table("residences").select("id, name, address, city, syndic_user_id")
        .eq("id", residence_id).limit(1).execute()
    )
    if not residence:
        raise HTTPException(404, "Residence not found")
    return residence


# ============================================================
# PUBLIC: QR code landing
# ============================================================
@router.get("/register/validate/{code}")
def validate_registration_code(code: str):
    client = get_supabase_client()
    residence = first_row(
        client.table("residences").select("id, name, address, city")
        .eq("onboarding_qr_code", code).limit(1).execute()
    )
    if not residence:
        raise HTTPException(404, "Invalid or expired registration link")
    return {"success": True, "data": residence}


@router.post("/register/submit")
def submit_registration(payload: RegistrationSubmit, request: Request):
    require_rate_limit(request, "register_submit", max_requests=5, window_seconds=600)

    data = payload.model_dump()
    missing = [f for f in REQUIRED_FIELDS if data.get(f) in (None, "") or (isinstance(data.get(f), str) and not data[f].strip())]
    if missing:
        raise HTTPException(400, f"All fields are required: {', '.join(missing)}")

    email = payload.email.strip().lower()
    apartment = payload.apartment_number.strip()
    client = get_supabase_client()
    residence = _residence(client, payload.residence_id)

    if verified_resident_email(client, residence["id"], email):
        raise HTTPException(400, "This email is already registered as a resident of this residence")
    if apartment_occupied(client, residence["id"], apartment):
        raise HTTPException(400, f"Apartment {apartment} is already occupied by a verified resident")

    pending = (
        client.table("resident_registration_requests").select("email, apartment_number")
        .eq("residence_id", residence["id"]).eq("status", "pending").execute()
    ).data or []
    if any(p.get("email") == email for p in pending):
        raise HTTPException(400, "A registration request for this email is already pending")
    if any(p.get("apartment_number") == apartment for p in pending):
        raise HTTPException(400, f"A registration request for apartment {apartment} is already pending")

    try:
        result = client.table("resident_registration_requests").insert({
            "residence_id": residence["id"],
            "full_name": payload.full_name.strip(),
            "email": email,
            "phone_number": payload.phone_number.strip(),
            "apartment_number": apartment,
            "id_number": payload.id_number,
            "id_document_url": payload.id_document_url,
            "status": "pending",
            "ip_address": get_rate_limit_identifier(request).removeprefix("ip:"),
            "user_agent": request.headers.get("user-agent"),
        }, returning="representation").execute()
    except Exception as e:
        raise HTTPException(500, f"Registration failed: {e}")

    send_registration_confirmation(email, payload.full_name, residence["name"], apartment)
    if residence.get("syndic_user_id"):
        syndic = first_row(
            client.table("users").select("email").eq("id", residence["syndic_user_id"]).limit(1).execute()
        )
        if syndic and syndic.get("email"):
            send_syndic_registration_notice(syndic["email"], payload.full_name, email, apartment, residence["name"])

    logger.info(f"Registration request for apt {apartment} at residence {residence['id']}")
    return {"success": True, "data": first_row(result)}


# ============================================================
# SYNDIC: review
# ============================================================
def _load_request(client, request_id: int, residence_id: int) -> dict:
    row = first_row(
        client.table("resident_registration_requests").select("*")
        .eq("id", request_id).eq("residence_id", residence_id).limit(1).execute()
    )
    if not row:
        raise HTTPException(404, "Registration request not found")
    return row


@router.get("/registration-requests")
def list_registration_requests(
    status: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)

    query = client.table("resident_registration_requests").select("*").eq("residence_id", residence_id)
    if status:
        query = query.eq("status", status)
    result = query.order("created_at", desc=True).execute()
    return {"success": True, "data": result.data or []}


@router.get("/registration-requests/stats")
def registration_stats(current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)

    rows = (
        client.table("resident_registration_requests").select("status")
        .eq("residence_id", residence_id).execute()
    ).data or []
    stats = {"pending": 0, "approved": 0, "rejected": 0}
    for row in rows:
        stats[row["status"]] = stats.get(row["status"], 0) + 1
    stats["total"] = len(rows)
    return {"success": True, "data": stats}


@router.post("/registration-requests/{request_id}/approve")
def approve_registration(request_id: int, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    req = _load_request(client, request_id, residence_id)

    if req["status"] != "pending":
        raise HTTPException(400, f"Request has already been {req['status']}")

    email = req["email"].strip().lower()
    apartment = req["apartment_number"]
    if verified_resident_email(client, residence_id, email):
        raise HTTPException(400, "This email is already registered as a resident of this residence")
    if apartment_occupied(client, residence_id, apartment):
        raise HTTPException(400, f"Apartment {apartment} is already occupied by a verified resident")

    code = generate_onboarding_code()
    code_expiry = expires_in(days=ONBOARDING_CODE_TTL_DAYS)

    existing_user = first_row(client.table("users").select("id").eq("email", email).limit(1).execute())
    created = []
    if existing_user:
        user_id = existing_user["id"]
    else:
        auth_user = create_auth_user(client, email, metadata={"full_name": req["full_name"]})
        user_id = auth_user.id
        created.append("auth")

    try:
        if not existing_user:
            client.table("users").insert({"id": user_id, "email": email, "name": req["full_name"]}).execute()
            created.append("users")

        profile_exists = first_row(client.table("profiles").select("id, role").eq("id", user_id).limit(1).execute())
        profile_data = {
            "full_name": req["full_name"],
            "phone_number": req.get("phone_number"),
            "resident_onboarding_code": code,
            "resident_onboarding_code_expires_at": code_expiry,
        }
        if profile_exists:
            client.table("profiles").update(profile_data).eq("id", user_id).execute()
        else:
            client.table("profiles").insert({"id": user_id, "role": "resident", **profile_data}).execute()
            created.append("profiles")

        client.table("profile_residences").upsert({
            "profile_id": user_id,
            "residence_id": residence_id,
            "apartment_number": apartment,
            "verified": False,
        }, on_conflict="profile_id,residence_id,apartment_number").execute()
    except Exception as e:
        logger.error(f"Approval of registration {request_id} failed, rolling back: {e}")
        if "profiles" in created:
            best_effort("rollback profile", lambda: client.table("profiles").delete().eq("id", user_id).execute())
        if "users" in created:
            best_effort("rollback user", lambda: client.table("users").delete().eq("id", user_id).execute())
        if "auth" in created:
            best_effort("rollback auth user", lambda: client.auth.admin.delete_user(user_id))
        raise HTTPException(500, f"Failed to approve registration: {e}")

    client.table("resident_registration_requests").update({
        "status": "approved",
        "reviewed_at": utc_now_iso(),
        "reviewed_by": current_user.id,
    }).eq("id", request_id).execute()

    residence = _residence(client, residence_id)
    send_welcome_code(email, req["full_name"], residence["name"], apartment, code)

    logger.info(f"Registration {request_id} approved, resident {user_id}")
    return {"success": True, "data": {"request_id": request_id, "user_id": user_id}}


@router.post("/registration-requests/{request_id}/reject")
def reject_registration(request_id: int, payload: RegistrationReject,
                        current_user: CurrentUser = Depends(get_current_user)):
    reason = (payload.reason or "").strip()
    if len(reason) < MIN_REJECTION_REASON:
        raise HTTPException(400, f"Rejection reason must be at least {MIN_REJECTION_REASON} characters")

    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    req = _load_request(client, request_id, residence_id)
    if req["status"] != "pending":
        raise HTTPException(400, f"Request has already been {req['status']}")

    client.table("resident_registration_requests").update({
        "status": "rejected",
        "rejection_reason": reason,
        "reviewed_at": utc_now_iso(),
        "reviewed_by": current_user.id,
    }).eq("id", request_id).execute()

    residence = _residence(client, residence_id)
    send_registration_rejection(req["email"], req["full_name"], residence["name"], reason)
    return {"success": True, "data": {"request_id": request_id, "status": "rejected"}}
