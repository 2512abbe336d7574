# routers/contributions.py

from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Query

from core.errors import handle_supabase_error
from core.logging_config import logger
from core.permission_helpers import require_syndic, require_syndic_residence, get_user_residence_id
from core.supabase_client import get_supabase_client
from core.supabase_helpers import first_row
from core.utils import sanitize
from dependencies.auth import get_current_user, CurrentUser
from models.contribution import (
    ContributionPlanCreate,
    ContributionPlanUpdate,
    ContributionGenerate,
    ContributionUpdate,
    ManualContribution,
)
from services.contributions import (
    deactivate_other_plans,
    generate_contributions,
    build_status_matrix,
    add_manual_contribution,
)

router = APIRouter(
    prefix="/contributions",
    tags=["Contributions"],
)

PLAN_REQUIRED_FIELDS = ["residence_id", "plan_name", "amount_per_period", "period_type", "start_date"]


def _check_residence(residence_id, own_residence_id):
    if str(residence_id) != str(own_residence_id):
        raise HTTPException(403, "You do not manage this residence")


def _load_plan(client, plan_id: int, residence_id: int) -> dict:
    plan = first_row(
        client.table("contribution_plans").select("*")
        .eq("id", plan_id).eq("residence_id", residence_id).limit(1).execute()
    )
    if not plan:
        raise HTTPException(404, "Contribution plan not found")
    return plan


def _load_contribution(client, contribution_id: int, residence_id: int) -> dict:
    row = first_row(
        client.table("contributions").select("*")
        .eq("id", contribution_id).eq("residence_id", residence_id).limit(1).execute()
    )
    if not row:
        raise HTTPException(404, "Contribution not found")
    return row


# =============================================================
# PLANS
# =============================================================
@router.get("/plans")
def list_plans(current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    result = (
        client.table("contribution_plans").select("*")
        .eq("residence_id", residence_id).order("created_at", desc=True).execute()
    )
    return {"success": True, "data": result.data or []}


@router.post("/plans")
def create_plan(payload: ContributionPlanCreate, current_user: CurrentUser = Depends(get_current_user)):
    require_syndic(current_user, "Only syndics can create contribution plans")

    data = payload.model_dump(mode="json")
    missing = [f for f in PLAN_REQUIRED_FIELDS if data.get(f) in (None, "")]
    if missing:
        raise HTTPException(400, f"Missing required fields: {', '.join(missing)}")

    client = get_supabase_client()
    _check_residence(payload.residence_id, require_syndic_residence(client, current_user))

    if payload.applies_to_all_apartments is not False and payload.is_active:
        deactivate_other_plans(client, payload.residence_id)

    try:
        result = client.table("contribution_plans").insert(
            {**sanitize(data), "created_by": current_user.id},
            returning="representation",
        ).execute()
    except Exception as e:
        raise handle_supabase_error(e, "Failed to create contribution plan")

    plan = first_row(result)
    logger.info(f"Contribution plan {plan and plan.get('id')} created for residence {payload.residence_id}")
    return {"success": True, "data": plan}


@router.patch("/plans/{plan_id}")
def update_plan(plan_id: int, payload: ContributionPlanUpdate, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    plan = _load_plan(client, plan_id, residence_id)

    updates = sanitize(payload.model_dump(mode="json", exclude_unset=True))
    if not updates:
        raise HTTPException(400, "No fields to update")

    # Activating a residence-wide plan retires the others
    if updates.get("is_active") and plan.get("applies_to_all_apartments") is not False:
        deactivate_other_plans(client, residence_id, keep_id=plan_id)

    result = client.table("contribution_plans").update(updates).eq("id", plan_id).execute()
    return {"success": True, "data": first_row(result) or {**plan, **updates}}


@router.delete("/plans/{plan_id}")
def delete_plan(plan_id: int, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    _load_plan(client, plan_id, residence_id)

    used = (
        client.table("contributions").select("id").eq("contribution_plan_id", plan_id).limit(1).execute()
    ).data
    if used:
        client.table("contribution_plans").update({"is_active": False}).eq("id", plan_id).execute()
        return {"success": True, "data": {"id": plan_id, "deactivated": True}}

    client.table("contribution_plans").delete().eq("id", plan_id).execute()
    return {"success": True, "data": {"id": plan_id, "deleted": True}}


# =============================================================
# GENERATION / MATRIX / MANUAL ENTRY
# =============================================================
@router.post("/generate")
def generate(payload: ContributionGenerate, current_user: CurrentUser = Depends(get_current_user)):
    if not payload.residence_id or not payload.period_start or not payload.period_end:
        raise HTTPException(400, "residence_id, period_start and period_end are required")
    require_syndic(current_user, "Only syndics can generate contributions")

    client = get_supabase_client()
    _check_residence(payload.residence_id, require_syndic_residence(client, current_user))

    result = generate_contributions(
        client, payload.residence_id, payload.period_start, payload.period_end, payload.custom_amounts,
    )
    return {"success": True, "data": result}


@router.get("/status")
def status_matrix(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)

    query = client.table("contributions").select("*").eq("residence_id", residence_id)
    if year:
        query = query.gte("period_start", f"{year}-01-01").lte("period_start", f"{year}-12-31")
    rows = query.order("period_start").execute().data or []
    return {"success": True, "data": build_status_matrix(rows)}


@router.post("/manual")
def add_manual(payload: ManualContribution, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    result = add_manual_contribution(client, residence_id, payload.model_dump(mode="json"), current_user.id)
    return {"success": True, "data": result}


@router.get("/apartments")
def apartments(current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    rows = (
        client.table("profile_residences")
        .select("id, profile_id, apartment_number, profiles(full_name)")
        .eq("residence_id", residence_id)
        .execute()
    ).data or []
    data = [{
        "profile_residence_id": r["id"],
        "profile_id": r["profile_id"],
        "apartment_number": r.get("apartment_number"),
        "full_name": (r.get("profiles") or {}).get("full_name"),
    } for r in rows if r.get("apartment_number")]
    return {"success": True, "data": data}


# =============================================================
# CONTRIBUTIONS
# =============================================================
@router.get("")
def list_contributions(
    status: Optional[str] = Query(None),
    period_start: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()

    if current_user.role == "syndic":
        residence_id = require_syndic_residence(client, current_user)
        query = client.table("contributions").select("*").eq("residence_id", residence_id)
    else:
        residence_id = get_user_residence_id(client, current_user)
        if not residence_id or current_user.role != "resident":
            return {"success": True, "data": []}
        links = (
            client.table("profile_residences").select("id")
            .eq("residence_id", residence_id).eq("profile_id", current_user.id).execute()
        ).data or []
        query = client.table("contributions").select("*").in_("profile_residence_id", [l["id"] for l in links])

    if status:
        query = query.eq("status", status)
    if period_start:
        query = query.eq("period_start", period_start)

    result = query.order("period_start", desc=True).execute()
    return {"success": True, "data": result.data or []}


@router.get("/{contribution_id}")
def get_contribution(contribution_id: int, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    return {"success": True, "data": _load_contribution(client, contribution_id, residence_id)}


@router.patch("/{contribution_id}")
def update_contribution(contribution_id: int, payload: ContributionUpdate,
                        current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    contribution = _load_contribution(client, contribution_id, residence_id)

    updates = sanitize(payload.model_dump(mode="json", exclude_unset=True))
    if not updates:
        raise HTTPException(400, "No fields to update")

    result = client.table("contributions").update(updates).eq("id", contribution_id).execute()
    return {"success": True, "data": first_row(result) or {**contribution, **updates}}


@router.delete("/{contribution_id}")
def delete_contribution(contribution_id: int, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    contribution = _load_contribution(client, contribution_id, residence_id)
    if float(contribution.get("amount_paid") or 0) > 0:
        raise HTTPException(400, "Contributions with payments cannot be deleted")

    client.table("contributions").delete().eq("id", contribution_id).execute()
    return {"success": True, "data": {"id": contribution_id}}
