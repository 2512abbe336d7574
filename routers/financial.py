# routers/financial.py

from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Query

from core.permission_helpers import require_syndic_residence, get_user_residence_id
from core.supabase_client import get_supabase_client
from core.utils import utc_now
from dependencies.auth import get_current_user, CurrentUser
from models.financial import CloseMonth
from services.financial import monthly_report, annual_report, unit_balance, close_month

router = APIRouter(
    prefix="/financial",
    tags=["Financial"],
)


# -----------------------------------------------------
# GET /financial/reports/monthly?year=&month=
# -----------------------------------------------------
@router.get("/reports/monthly")
def get_monthly_report(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    month: Optional[int] = Query(None, ge=1, le=12),
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)

    today = utc_now().date()
    year = year or today.year
    month = month or today.month

    try:
        report = monthly_report(client, residence_id, year, month)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(500, f"Unable to build monthly report: {e}")
    return {"success": True, "data": report}


@router.get("/reports/annual")
def get_annual_report(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)

    year = year or utc_now().date().year

    try:
        report = annual_report(client, residence_id, year)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(500, f"Unable to build annual report: {e}")
    return {"success": True, "data": report}


# -----------------------------------------------------
# GET /financial/unit-balance
# Residents: own balance. Syndics: ?user_id=
# -----------------------------------------------------
@router.get("/unit-balance")
def get_unit_balance(
    user_id: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()

    if current_user.role == "syndic":
        if not user_id:
            raise HTTPException(400, "user_id is required")
        residence_id = require_syndic_residence(client, current_user)
        target = user_id
    elif current_user.role == "resident":
        residence_id = get_user_residence_id(client, current_user)
        if not residence_id:
            raise HTTPException(404, "No residence found")
        target = current_user.id
    else:
        raise HTTPException(403, "You do not have access to balances")

    return {"success": True, "data": unit_balance(client, residence_id, target)}


# -----------------------------------------------------
# POST /financial/close-month
# -----------------------------------------------------
@router.post("/close-month")
def post_close_month(payload: CloseMonth, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)

    snapshot = close_month(
        client,
        residence_id,
        payload.year,
        payload.month,
        created_by=current_user.id,
        cash_balance=payload.cash_balance,
        bank_balance=payload.bank_balance,
        notes=payload.notes,
    )
    return {"success": True, "data": snapshot}


@router.get("/snapshots")
def list_snapshots(current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    result = (
        client.table("balance_snapshots").select("*")
        .eq("residence_id", residence_id).order("snapshot_date", desc=True).execute()
    )
    return {"success": True, "data": result.data or []}
