# routers/fees.py

from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Query

from core.errors import handle_supabase_error
from core.logging_config import logger
from core.permission_helpers import require_syndic_residence, get_user_residence_id, requires_permission
from core.supabase_client import get_supabase_client
from core.supabase_helpers import first_row
from core.utils import sanitize
from dependencies.auth import get_current_user, CurrentUser
from models.fee import FeeCreate, FeeUpdate, BulkFeeCreate

router = APIRouter(
    prefix="/fees",
    tags=["Fees"],
)

can_write = requires_permission("fees:write")


def _load_fee(client, fee_id: int, residence_id: int) -> dict:
    fee = first_row(
        client.table("fees").select("*").eq("id", fee_id).eq("residence_id", residence_id).limit(1).execute()
    )
    if not fee:
        raise HTTPException(404, "Fee not found")
    return fee


# -------------------------------------------------------------
# LIST (syndic: residence, resident: own fees)
# -------------------------------------------------------------
@router.get("")
def list_fees(
    status: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()

    if current_user.role == "syndic":
        residence_id = require_syndic_residence(client, current_user)
        query = client.table("fees").select("*").eq("residence_id", residence_id)
        if user_id:
            query = query.eq("user_id", user_id)
    elif current_user.role == "resident":
        residence_id = get_user_residence_id(client, current_user)
        if not residence_id:
            return {"success": True, "data": []}
        query = client.table("fees").select("*").eq("residence_id", residence_id).eq("user_id", current_user.id)
    else:
        raise HTTPException(403, "You do not have access to fees")

    if status:
        query = query.eq("status", status)

    try:
        result = query.order("due_date", desc=True).execute()
    except Exception as e:
        raise HTTPException(500, f"Unable to fetch fees: {e}")
    return {"success": True, "data": result.data or []}


@router.get("/{fee_id}")
def get_fee(fee_id: int, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = get_user_residence_id(client, current_user)
    if not residence_id:
        raise HTTPException(404, "Fee not found")

    fee = _load_fee(client, fee_id, residence_id)
    if current_user.role == "resident" and fee["user_id"] != current_user.id:
        raise HTTPException(404, "Fee not found")
    if current_user.role not in ("syndic", "resident"):
        raise HTTPException(403, "You do not have access to fees")
    return {"success": True, "data": fee}


# -------------------------------------------------------------
# CREATE
# -------------------------------------------------------------
@router.post("")
def create_fee(payload: FeeCreate, current_user: CurrentUser = Depends(can_write)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)

    link = first_row(
        client.table("profile_residences").select("id, apartment_number")
        .eq("residence_id", residence_id).eq("profile_id", payload.user_id).limit(1).execute()
    )
    if not link:
        raise HTTPException(404, "Resident not found in your residence")

    data = sanitize(payload.model_dump(mode="json"))
    try:
        result = client.table("fees").insert({
            **data,
            "residence_id": residence_id,
            "profile_residence_id": link["id"],
            "apartment_number": link.get("apartment_number"),
            "status": "unpaid",
            "created_by": current_user.id,
        }, returning="representation").execute()
    except Exception as e:
        raise handle_supabase_error(e, "Failed to create fee")

    return {"success": True, "data": first_row(result)}


@router.post("/bulk")
def create_bulk_fees(payload: BulkFeeCreate, current_user: CurrentUser = Depends(can_write)):
    """Split `total_amount` evenly between the verified residents of the listed apartments."""
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)

    links = (
        client.table("profile_residences").select("id, profile_id, apartment_number")
        .eq("residence_id", residence_id).eq("verified", True)
        .in_("apartment_number", payload.apartment_numbers)
        .execute()
    ).data or []
    if not links:
        raise HTTPException(400, "No verified residents found for the selected apartments")

    per_apartment = round(payload.total_amount / len(links), 2)
    rows = [{
        "residence_id": residence_id,
        "user_id": link["profile_id"],
        "profile_residence_id": link["id"],
        "apartment_number": link["apartment_number"],
        "title": payload.title,
        "description": payload.description,
        "fee_type": str(payload.fee_type or "one_time"),
        "amount": per_apartment,
        "due_date": payload.due_date.isoformat(),
        "status": "unpaid",
        "created_by": current_user.id,
    } for link in links]

    try:
        result = client.table("fees").insert(rows).execute()
    except Exception as e:
        raise handle_supabase_error(e, "Failed to create fees")

    logger.info(f"Residence {residence_id}: {len(rows)} bulk fee(s) '{payload.title}' at {per_apartment}")
    return {
        "success": True,
        "data": {"count": len(rows), "amount_per_apartment": per_apartment, "fees": result.data or []},
    }


# -------------------------------------------------------------
# UPDATE / DELETE
# -------------------------------------------------------------
@router.patch("/{fee_id}")
def update_fee(fee_id: int, payload: FeeUpdate, current_user: CurrentUser = Depends(can_write)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    fee = _load_fee(client, fee_id, residence_id)

    updates = sanitize(payload.model_dump(mode="json", exclude_unset=True))
    if not updates:
        raise HTTPException(400, "No fields to update")
    if fee["status"] == "paid" and "amount" in updates:
        raise HTTPException(400, "Cannot change the amount of a paid fee")

    try:
        result = client.table("fees").update(updates).eq("id", fee_id).execute()
    except Exception as e:
        raise handle_supabase_error(e, "Failed to update fee")
    return {"success": True, "data": first_row(result) or {**fee, **updates}}


@router.delete("/{fee_id}")
def delete_fee(fee_id: int, current_user: CurrentUser = Depends(can_write)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    fee = _load_fee(client, fee_id, residence_id)

    if fee["status"] == "paid":
        raise HTTPException(400, "Paid fees cannot be deleted")

    try:
        client.table("fees").delete().eq("id", fee_id).execute()
    except Exception as e:
        raise handle_supabase_error(e, "Failed to delete fee")
    return {"success": True, "data": {"id": fee_id}}
