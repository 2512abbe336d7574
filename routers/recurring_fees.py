# routers/recurring_fees.py

from fastapi import APIRouter, HTTPException, Depends

from core.errors import handle_supabase_error
from core.permission_helpers import require_syndic_residence
from core.supabase_client import get_supabase_client
from core.supabase_helpers import first_row
from core.utils import sanitize
from dependencies.auth import get_current_user, CurrentUser
from models.fee import RecurringFeeCreate, RecurringFeeUpdate, MarkFeePaid, MarkFeesPaid
from services.recurring_fees import build_rule_row, generate_fees_for_rule, mark_fees_paid

router = APIRouter(
    prefix="/recurring-fees",
    tags=["Recurring Fees"],
)


def _load_rule(client, rule_id: int, residence_id: int) -> dict:
    rule = first_row(
        client.table("recurring_fee_settings").select("*")
        .eq("id", rule_id).eq("residence_id", residence_id).limit(1).execute()
    )
    if not rule:
        raise HTTPException(404, "Recurring fee rule not found")
    return rule


# -------------------------------------------------------------
# RULES CRUD
# -------------------------------------------------------------
@router.get("")
def list_rules(current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    result = (
        client.table("recurring_fee_settings").select("*")
        .eq("residence_id", residence_id).order("created_at", desc=True).execute()
    )
    return {"success": True, "data": result.data or []}


@router.post("")
def create_rule(payload: RecurringFeeCreate, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)

    row = build_rule_row(residence_id, current_user.id, sanitize(payload.model_dump(mode="json")))
    try:
        result = client.table("recurring_fee_settings").insert(row, returning="representation").execute()
    except Exception as e:
        raise handle_supabase_error(e, "Failed to create recurring fee")
    return {"success": True, "data": first_row(result)}


@router.patch("/{rule_id}")
def update_rule(rule_id: int, payload: RecurringFeeUpdate, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    rule = _load_rule(client, rule_id, residence_id)

    updates = sanitize(payload.model_dump(exclude_unset=True))
    if not updates:
        raise HTTPException(400, "No fields to update")

    result = client.table("recurring_fee_settings").update(updates).eq("id", rule_id).execute()
    return {"success": True, "data": first_row(result) or {**rule, **updates}}


@router.delete("/{rule_id}")
def delete_rule(rule_id: int, current_user: CurrentUser = Depends(get_current_user)):
    """Deactivates the rule; fees it already generated are kept."""
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    _load_rule(client, rule_id, residence_id)

    client.table("recurring_fee_settings").update({"is_active": False}).eq("id", rule_id).execute()
    return {"success": True, "data": {"id": rule_id, "is_active": False}}


# -------------------------------------------------------------
# GENERATION
# -------------------------------------------------------------
@router.post("/{rule_id}/generate")
def generate(rule_id: int, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    rule = _load_rule(client, rule_id, residence_id)

    if not rule.get("is_active"):
        raise HTTPException(400, "Recurring fee rule is inactive")

    try:
        result = generate_fees_for_rule(client, rule, current_user.id)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(500, f"Fee generation failed: {e}")
    return {"success": True, "data": result}


@router.get("/{rule_id}/fees")
def fees_for_rule(rule_id: int, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    _load_rule(client, rule_id, residence_id)

    result = (
        client.table("fees").select("*")
        .eq("recurring_setting_id", rule_id).order("due_date", desc=True).execute()
    )
    return {"success": True, "data": result.data or []}


@router.get("/unpaid/{user_id}")
def unpaid_for_resident(user_id: str, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)

    result = (
        client.table("fees").select("*")
        .eq("residence_id", residence_id).eq("user_id", user_id).eq("status", "unpaid")
        .order("due_date").execute()
    )
    return {"success": True, "data": result.data or []}


# -------------------------------------------------------------
# MARK PAID
# -------------------------------------------------------------
@router.post("/fees/{fee_id}/mark-paid")
def mark_paid(fee_id: int, payload: MarkFeePaid, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)

    result = mark_fees_paid(
        client, [fee_id], residence_id, current_user.id,
        method=payload.method, reference_number=payload.reference_number, notes=payload.notes,
    )
    return {"success": True, "data": result}


@router.post("/fees/mark-paid")
def mark_many_paid(payload: MarkFeesPaid, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)

    result = mark_fees_paid(
        client, payload.fee_ids, residence_id, current_user.id,
        method=payload.method, reference_number=payload.reference_number, notes=payload.notes,
    )
    return {"success": True, "data": result}
