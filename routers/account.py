# routers/account.py

from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Depends, Request

from core.codes import generate_access_code, expires_in, ACCESS_CODE_TTL_DAYS
from core.email_utils import send_replacement_code
from core.logging_config import logger
from core.permission_helpers import require_syndic, require_syndic_residence, get_user_residence_id
from core.rate_limiter import require_rate_limit
from core.supabase_client import get_supabase_client
from core.supabase_helpers import first_row
from core.utils import parse_datetime, utc_now_iso
from dependencies.auth import get_current_user, CurrentUser
from models.account import ReplacementCodeCreate, AccessCodeRedeem, DeletionRequestCreate
from services.account_deletion import (
    delete_syndic_account,
    delete_user_account,
    transfer_syndic_data,
)

router = APIRouter(
    prefix="/account",
    tags=["Account"],
)

MAX_CODE_ATTEMPTS = 5
CODE_GENERATION_RETRIES = 5


# =============================================================
# DELETE ACCOUNT
# =============================================================
@router.post("/delete")
def delete_syndic(current_user: CurrentUser = Depends(get_current_user)):
    """
    Syndic self-deletion. The residence is deleted when the syndic is
    its only member, otherwise it is left without a syndic.
    """
    require_syndic(current_user, "Only syndics can use this endpoint")
    client = get_supabase_client()
    residence_id = get_user_residence_id(client, current_user)

    try:
        result = delete_syndic_account(client, current_user.id, residence_id)
    except Exception as e:
        logger.error(f"Syndic account deletion failed for {current_user.id}: {e}", exc_info=True)
        raise HTTPException(500, f"Account deletion failed: {e}")

    return {"success": True, "data": result}


@router.delete("")
def delete_own_account(current_user: CurrentUser = Depends(get_current_user)):
    if current_user.role == "syndic":
        raise HTTPException(403, "Syndics must use the transfer process")

    client = get_supabase_client()
    try:
        result = delete_user_account(client, current_user.id)
    except Exception as e:
        logger.error(f"Account deletion failed for {current_user.id}: {e}", exc_info=True)
        raise HTTPException(500, f"Account deletion failed: {e}")

    return {"success": True, "data": result}


# =============================================================
# SYNDIC REPLACEMENT CODES
# =============================================================
def _code_status(row: dict) -> str:
    if row.get("code_used"):
        return "used"
    if (row.get("failed_attempts") or 0) >= MAX_CODE_ATTEMPTS:
        return "locked"
    expires_at = parse_datetime(row.get("expires_at"))
    if expires_at and expires_at < datetime.now(timezone.utc):
        return "expired"
    return "active"


@router.post("/replacement-code")
def create_replacement_code(payload: ReplacementCodeCreate, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)

    email = payload.replacement_email.strip().lower()
    if email == current_user.email.lower():
        raise HTTPException(400, "The replacement must be someone else")

    # retire previous active codes
    client.table("access_codes").update({"code_used": True, "used_at": utc_now_iso()}) \
        .eq("original_user_id", current_user.id).eq("code_used", False).execute()

    code = None
    for _ in range(CODE_GENERATION_RETRIES):
        candidate = generate_access_code()
        clash = client.table("access_codes").select("id").eq("code", candidate).limit(1).execute()
        if not clash.data:
            code = candidate
            break
    if not code:
        raise HTTPException(500, "Could not generate a unique code")

    expires_at = expires_in(days=ACCESS_CODE_TTL_DAYS)
    result = client.table("access_codes").insert({
        "code": code,
        "original_user_id": current_user.id,
        "replacement_email": email,
        "residence_id": residence_id,
        "action_type": str(payload.action_type),
        "expires_at": expires_at,
        "code_used": False,
        "failed_attempts": 0,
    }, returning="representation").execute()

    residence = first_row(client.table("residences").select("name").eq("id", residence_id).limit(1).execute()) or {}
    email_sent = send_replacement_code(email, residence.get("name", "SAKAN"), code, expires_at)

    logger.info(f"Replacement code issued by syndic {current_user.id} for {email}")
    return {"success": True, "data": {**(first_row(result) or {}), "email_sent": email_sent}}


@router.get("/replacement-code")
def replacement_code_status(current_user: CurrentUser = Depends(get_current_user)):
    require_syndic(current_user)
    client = get_supabase_client()
    row = first_row(
        client.table("access_codes").select("*")
        .eq("original_user_id", current_user.id).order("created_at", desc=True).limit(1).execute()
    )
    if not row:
        return {"success": True, "data": None}
    return {"success": True, "data": {**row, "status": _code_status(row)}}


@router.delete("/replacement-code")
def cancel_replacement_code(current_user: CurrentUser = Depends(get_current_user)):
    require_syndic(current_user)
    client = get_supabase_client()
    result = (
        client.table("access_codes").delete()
        .eq("original_user_id", current_user.id).eq("code_used", False).execute()
    )
    return {"success": True, "data": {"cancelled": len(result.data or [])}}


def _load_code(client, code: str) -> dict:
    row = first_row(client.table("access_codes").select("*").eq("code", code.strip().upper()).limit(1).execute())
    if not row:
        raise HTTPException(404, "Invalid code")
    return row


@router.post("/replacement-code/validate")
def validate_replacement_code(payload: AccessCodeRedeem, request: Request,
                              current_user: CurrentUser = Depends(get_current_user)):
    require_rate_limit(request, "access_code", identifier=current_user.id, max_requests=10, window_seconds=600)
    client = get_supabase_client()
    row = _load_code(client, payload.code)

    if row["replacement_email"].lower() != current_user.email.lower():
        client.table("access_codes").update(
            {"failed_attempts": (row.get("failed_attempts") or 0) + 1}
        ).eq("id", row["id"]).execute()
        raise HTTPException(403, "This code was issued to a different email")

    status = _code_status(row)
    if status != "active":
        raise HTTPException(400, f"Code is {status}")

    residence = first_row(
        client.table("residences").select("id, name, address, city").eq("id", row["residence_id"]).limit(1).execute()
    )
    return {"success": True, "data": {"valid": True, "action_type": row["action_type"], "residence": residence}}


@router.post("/replacement-code/complete")
def complete_replacement(payload: AccessCodeRedeem, request: Request,
                         current_user: CurrentUser = Depends(get_current_user)):
    """The replacement redeems the code and becomes syndic of the residence."""
    require_rate_limit(request, "access_code", identifier=current_user.id, max_requests=10, window_seconds=600)
    client = get_supabase_client()
    row = _load_code(client, payload.code)

    if row["replacement_email"].lower() != current_user.email.lower():
        raise HTTPException(403, "This code was issued to a different email")
    status = _code_status(row)
    if status != "active":
        raise HTTPException(400, f"Code is {status}")
    if current_user.role == "syndic":
        raise HTTPException(400, "You already manage a residence")

    transfer_syndic_data(client, row["original_user_id"], current_user.id, row["residence_id"])

    client.table("access_codes").update({
        "code_used": True,
        "used_by_user_id": current_user.id,
        "used_at": utc_now_iso(),
    }).eq("id", row["id"]).execute()

    result = {"residence_id": row["residence_id"], "action_type": row["action_type"]}
    if row["action_type"] == "delete_account":
        delete_user_account(client, row["original_user_id"])
        result["previous_syndic_deleted"] = True
    else:
        client.table("profiles").update({"role": "resident"}).eq("id", row["original_user_id"]).execute()
        result["previous_syndic_deleted"] = False

    logger.info(f"Residence {row['residence_id']} handed over to {current_user.id}")
    return {"success": True, "data": result}


# =============================================================
# SUCCESSOR CANDIDATES + DELETION REQUESTS (admin-mediated)
# =============================================================
@router.get("/replacement-residents")
def replacement_residents(current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)

    rows = (
        client.table("profile_residences")
        .select("profile_id, apartment_number, verified, profiles(full_name, role)")
        .eq("residence_id", residence_id)
        .execute()
    ).data or []
    candidates = [{
        "id": r["profile_id"],
        "full_name": (r.get("profiles") or {}).get("full_name"),
        "apartment_number": r.get("apartment_number"),
        "verified": r.get("verified"),
    } for r in rows if r["profile_id"] != current_user.id and (r.get("profiles") or {}).get("role") != "syndic"]
    return {"success": True, "data": candidates}


@router.get("/deletion-request")
def get_deletion_request(current_user: CurrentUser = Depends(get_current_user)):
    require_syndic(current_user)
    client = get_supabase_client()
    row = first_row(
        client.table("syndic_deletion_requests").select("*")
        .eq("syndic_user_id", current_user.id).order("requested_at", desc=True).limit(1).execute()
    )
    return {"success": True, "data": row}


@router.post("/deletion-request")
def create_deletion_request(payload: DeletionRequestCreate, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)

    pending = first_row(
        client.table("syndic_deletion_requests").select("id")
        .eq("syndic_user_id", current_user.id).eq("status", "pending").limit(1).execute()
    )
    if pending:
        raise HTTPException(400, "A deletion request is already pending")

    if payload.successor_user_id:
        link = first_row(
            client.table("profile_residences").select("id")
            .eq("residence_id", residence_id).eq("profile_id", payload.successor_user_id).limit(1).execute()
        )
        if not link or payload.successor_user_id == current_user.id:
            raise HTTPException(400, "Successor must be another resident of your residence")

    result = client.table("syndic_deletion_requests").insert({
        "syndic_user_id": current_user.id,
        "residence_id": residence_id,
        "successor_user_id": payload.successor_user_id,
        "status": "pending",
        "requested_at": utc_now_iso(),
    }, returning="representation").execute()
    return {"success": True, "data": first_row(result)}


@router.delete("/deletion-request")
def cancel_deletion_request(current_user: CurrentUser = Depends(get_current_user)):
    require_syndic(current_user)
    client = get_supabase_client()

    pending = first_row(
        client.table("syndic_deletion_requests").select("id")
        .eq("syndic_user_id", current_user.id).eq("status", "pending").limit(1).execute()
    )
    if not pending:
        raise HTTPException(404, "No pending deletion request")

    client.table("syndic_deletion_requests").delete().eq("id", pending["id"]).execute()
    return {"success": True, "data": {"id": pending["id"], "cancelled": True}}
