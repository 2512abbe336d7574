# routers/dashboard.py

from datetime import timedelta

from fastapi import APIRouter, Depends

from core.logging_config import logger
from core.permission_helpers import get_user_residence_id
from core.supabase_client import get_supabase_client
from core.supabase_helpers import first_row
from core.utils import parse_date, to_amount, utc_now
from dependencies.auth import get_current_user, CurrentUser
from services.financial import cash_and_bank

router = APIRouter(
    prefix="/dashboard",
    tags=["Dashboard"],
)

TOP_RESIDENTS = 3
RECENT_PAYMENT_DAYS = 7


def empty_stats(user: CurrentUser) -> dict:
    return {
        "totalResidents": 0,
        "cashOnHand": 0,
        "bankBalance": 0,
        "outstandingFees": 0,
        "openIncidents": 0,
        "todayPayments": 0,
        "monthlyPayments": 0,
        "fillRate": 100,
        "topResidents": [],
        "user": {"name": user.full_name or "User", "email": user.email, "role": user.role},
        "residence": None,
        "onboardingCompleted": user.onboarding_completed,
    }


def compliance(links: list, fees: list) -> list:
    """Per-resident share of fees paid, best first."""
    rows = []
    for link in links:
        profile = link.get("profiles") or {}
        resident_fees = [f for f in fees if f.get("user_id") == profile.get("id")]
        paid = len([f for f in resident_fees if f.get("status") == "paid"])
        total = len(resident_fees)
        rows.append({
            "id": profile.get("id"),
            "full_name": profile.get("full_name"),
            "apartment_number": link.get("apartment_number"),
            "complianceRate": round(paid / total * 100) if total else 100,
            "totalFees": total,
            "paidFees": paid,
        })
    rows.sort(key=lambda r: r["complianceRate"], reverse=True)
    return rows


def fill_rate(fees: list) -> int:
    total = sum(to_amount(f["amount"]) for f in fees)
    paid = sum(to_amount(f["amount"]) for f in fees if f.get("status") == "paid")
    return round(paid / total * 100) if total else 100


@router.get("")
def get_dashboard(current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    stats = empty_stats(current_user)

    residence_id = get_user_residence_id(client, current_user)
    if not residence_id:
        return {"success": True, "data": stats}

    residence = first_row(
        client.table("residences").select("id, name, address, city").eq("id", residence_id).limit(1).execute()
    )
    links = (
        client.table("profile_residences")
        .select("apartment_number, profiles(id, full_name)")
        .eq("residence_id", residence_id)
        .eq("verified", True)
        .execute()
    ).data or []
    fees = (
        client.table("fees").select("id, amount, status, user_id").eq("residence_id", residence_id).execute()
    ).data or []
    incidents = (
        client.table("incidents").select("id")
        .eq("residence_id", residence_id).in_("status", ["open", "in_progress"]).execute()
    ).data or []

    today = utc_now().date()
    recent = (
        client.table("payments").select("id, amount, paid_at")
        .eq("residence_id", residence_id)
        .eq("status", "verified")
        .gte("paid_at", (today - timedelta(days=RECENT_PAYMENT_DAYS)).isoformat())
        .order("paid_at", desc=True)
        .execute()
    ).data or []

    balances = cash_and_bank(client, residence_id)

    stats.update({
        "totalResidents": len(links),
        "cashOnHand": balances["cash_on_hand"],
        "bankBalance": balances["bank_balance"],
        "outstandingFees": round(
            sum(to_amount(f["amount"]) for f in fees if f.get("status") in ("unpaid", "overdue")), 2
        ),
        "openIncidents": len(incidents),
        "todayPayments": len([p for p in recent if parse_date(p.get("paid_at")) == today]),
        "monthlyPayments": round(sum(to_amount(p["amount"]) for p in recent), 2),
        "fillRate": fill_rate(fees),
        "topResidents": compliance(links, fees)[:TOP_RESIDENTS],
        "residence": residence,
    })
    logger.debug(f"Dashboard for {current_user.id}: residence {residence_id}")
    return {"success": True, "data": stats}
