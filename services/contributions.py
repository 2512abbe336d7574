# services/contributions.py

"""
Contribution plans and the per-apartment contributions they produce.
"""

import calendar
from datetime import date
from typing import Dict, Any, List, Optional

from fastapi import HTTPException
from supabase import Client

from core.logging_config import logger
from core.supabase_helpers import first_row
from core.utils import parse_date, to_amount, utc_now, utc_now_iso, month_bounds

MONTH_LABELS = ["janv", "févr", "mars", "avr", "mai", "juin",
                "juil", "août", "sept", "oct", "nov", "déc"]

OUTSTANDING_STATUSES = ("pending", "partial", "overdue")


def month_key(d: date) -> str:
    """'janv-25' style column key."""
    return f"{MONTH_LABELS[d.month - 1]}-{d.year % 100:02d}"


# ============================================================
# Period alignment
# ============================================================
def align_period(period_type: str, start: date, end: date) -> tuple:
    """
    Snap a requested period to the plan's natural boundaries.
    Monthly plans keep the given dates.
    """
    if period_type == "quarterly":
        first_month = 3 * ((start.month - 1) // 3) + 1
        q_start = date(start.year, first_month, 1)
        return q_start, month_bounds(start.year, first_month + 2)[1]

    if period_type == "semi_annual":
        first_month = 1 if start.month <= 6 else 7
        return date(start.year, first_month, 1), month_bounds(start.year, first_month + 5)[1]

    if period_type == "annual":
        return date(start.year, 1, 1), date(start.year, 12, 31)

    return start, end


def due_date_for(period_start: date, due_day: Optional[int]) -> date:
    day = min(int(due_day or 1), calendar.monthrange(period_start.year, period_start.month)[1])
    return period_start.replace(day=day)


# ============================================================
# Plan selection
# ============================================================
def plan_covers(plan: Dict[str, Any], start: date, end: date) -> bool:
    plan_start = parse_date(plan.get("start_date"))
    plan_end = parse_date(plan.get("end_date"))
    return plan_start <= end and (plan_end is None or plan_end >= start)


def select_plan(plans: List[Dict[str, Any]], start: date, end: date) -> Dict[str, Any]:
    """
    Active plan overlapping [start, end]. Raises 400 with a message
    telling the syndic what is missing.
    """
    if not plans:
        raise HTTPException(400, "No contribution plan found. Please create a contribution plan first")

    active = [p for p in plans if p.get("is_active")]
    if not active:
        raise HTTPException(400, "No active contribution plan. Please activate a plan")

    for plan in active:
        if plan_covers(plan, start, end):
            return plan

    plan = active[0]
    raise HTTPException(
        400,
        f"The active plan '{plan.get('plan_name')}' does not cover "
        f"{start.isoformat()} - {end.isoformat()} "
        f"(plan runs from {plan.get('start_date')} to {plan.get('end_date') or 'no end date'})",
    )


def deactivate_other_plans(client: Client, residence_id: int, keep_id=None):
    query = (
        client.table("contribution_plans")
        .update({"is_active": False})
        .eq("residence_id", residence_id)
        .eq("is_active", True)
    )
    if keep_id is not None:
        query = query.neq("id", keep_id)
    query.execute()


# ============================================================
# Generation
# ============================================================
def generate_contributions(
    client: Client,
    residence_id: int,
    period_start: date,
    period_end: date,
    custom_amounts: Optional[Dict[str, float]] = None,
) -> Dict[str, Any]:
    if period_end < period_start:
        raise HTTPException(400, "period_end must be after period_start")

    plans = (
        client.table("contribution_plans")
        .select("*")
        .eq("residence_id", residence_id)
        .order("created_at", desc=True)
        .execute()
    ).data or []

    plan = select_plan(plans, period_start, period_end)
    start, end = align_period(plan["period_type"], period_start, period_end)
    return create_period_contributions(client, residence_id, plan, start, end, custom_amounts)


def create_period_contributions(
    client: Client,
    residence_id: int,
    plan: Dict[str, Any],
    start: date,
    end: date,
    custom_amounts: Optional[Dict[str, float]] = None,
) -> Dict[str, Any]:
    """One contribution per apartment link; existing (link, period_start) pairs are skipped."""
    links = (
        client.table("profile_residences")
        .select("id, apartment_number")
        .eq("residence_id", residence_id)
        .execute()
    ).data or []
    links = [l for l in links if l.get("apartment_number")]

    existing = (
        client.table("contributions")
        .select("profile_residence_id")
        .eq("residence_id", residence_id)
        .eq("period_start", start.isoformat())
        .execute()
    ).data or []
    already = {row["profile_residence_id"] for row in existing}

    custom_amounts = custom_amounts or {}
    due = due_date_for(start, plan.get("due_day"))
    rows = []
    for link in links:
        if link["id"] in already:
            continue
        amount = custom_amounts.get(link["apartment_number"], plan["amount_per_period"])
        rows.append({
            "residence_id": residence_id,
            "profile_residence_id": link["id"],
            "contribution_plan_id": plan["id"],
            "apartment_number": link["apartment_number"],
            "period_start": start.isoformat(),
            "period_end": end.isoformat(),
            "amount_due": to_amount(amount),
            "amount_paid": 0,
            "status": "pending",
            "due_date": due.isoformat(),
        })

    if rows:
        client.table("contributions").insert(rows).execute()

    logger.info(
        f"Residence {residence_id}: {len(rows)} contribution(s) generated for {start} - {end} "
        f"with plan {plan['id']}"
    )
    return {
        "count": len(rows),
        "skipped": len(links) - len(rows),
        "plan_id": plan["id"],
        "plan_name": plan.get("plan_name"),
        "period_start": start.isoformat(),
        "period_end": end.isoformat(),
    }


def auto_generate_due_plans(client: Client, today: Optional[date] = None) -> Dict[str, Any]:
    """Run generation for active auto_generate plans whose generation_day is today."""
    today = today or utc_now().date()
    plans = (
        client.table("contribution_plans")
        .select("*")
        .eq("is_active", True)
        .eq("auto_generate", True)
        .execute()
    ).data or []

    total = 0
    processed = 0
    for plan in plans:
        if int(plan.get("generation_day") or 1) != today.day:
            continue
        start, end = align_period(plan["period_type"], *month_bounds(today.year, today.month))
        if not plan_covers(plan, start, end):
            continue
        try:
            result = create_period_contributions(client, plan["residence_id"], plan, start, end)
            total += result["count"]
            processed += 1
        except Exception as e:
            logger.error(f"Auto-generation failed for plan {plan.get('id')}: {e}", exc_info=True)

    return {"plans_processed": processed, "contributions_created": total}


# ============================================================
# Status matrix (apartments × months)
# ============================================================
def build_status_matrix(contributions: List[Dict[str, Any]]) -> Dict[str, Any]:
    apartments: Dict[str, Dict[str, Any]] = {}
    months = set()

    for c in contributions:
        apt = c.get("apartment_number") or "-"
        start = parse_date(c.get("period_start"))
        if start is None:
            continue
        key = month_key(start)
        months.add((start.year, start.month, key))

        row = apartments.setdefault(apt, {
            "apartment_number": apt,
            "months": {},
            "outstanding_months": 0,
            "total_due": 0.0,
            "total_paid": 0.0,
        })
        row["months"][key] = {
            "id": c.get("id"),
            "status": c.get("status"),
            "amount_due": to_amount(c.get("amount_due")),
            "amount_paid": to_amount(c.get("amount_paid")),
        }
        if c.get("status") == "cancelled":
            continue
        row["total_due"] = round(row["total_due"] + to_amount(c.get("amount_due")), 2)
        row["total_paid"] = round(row["total_paid"] + to_amount(c.get("amount_paid")), 2)
        if c.get("status") in OUTSTANDING_STATUSES:
            row["outstanding_months"] += 1

    return {
        "months": [key for _, _, key in sorted(months)],
        "apartments": sorted(apartments.values(), key=lambda r: _apartment_sort_key(r["apartment_number"])),
    }


def _apartment_sort_key(apt: str):
    return (0, int(apt), "") if apt.isdigit() else (1, 0, apt)


# ============================================================
# Manual (historical) contribution
# ============================================================
def add_manual_contribution(client: Client, residence_id: int, payload: Dict[str, Any], created_by: str) -> Dict[str, Any]:
    month = int(payload["month"])
    year = int(payload["year"])
    amount = float(payload["amount"])

    if not 1 <= month <= 12:
        raise HTTPException(400, "Month must be between 1 and 12")
    if not 2020 <= year <= 2100:
        raise HTTPException(400, "Year must be between 2020 and 2100")
    if amount <= 0:
        raise HTTPException(400, "Amount must be greater than 0")

    user_id = payload["user_id"]
    link = first_row(
        client.table("profile_residences")
        .select("id, apartment_number")
        .eq("residence_id", residence_id)
        .eq("profile_id", user_id)
        .limit(1)
        .execute()
    )
    if not link:
        raise HTTPException(404, "Resident not found in your residence")

    duplicate = (
        client.table("fees")
        .select("id")
        .eq("residence_id", residence_id)
        .eq("user_id", user_id)
        .eq("contribution_month", month)
        .eq("contribution_year", year)
        .limit(1)
        .execute()
    )
    if duplicate.data:
        raise HTTPException(400, f"A contribution for {MONTH_LABELS[month - 1]}-{year % 100:02d} already exists")

    label = month_key(date(year, month, 1))
    paid = payload.get("status") == "paid"
    now = utc_now_iso()
    apartment = payload.get("apartment_number") or link.get("apartment_number")

    fee = first_row(
        client.table("fees").insert({
            "residence_id": residence_id,
            "user_id": user_id,
            "profile_residence_id": link["id"],
            "apartment_number": apartment,
            "title": f"Contribution {label}",
            "fee_type": "one_time",
            "amount": round(amount, 2),
            "due_date": date(year, month, 1).isoformat(),
            "status": "paid" if paid else "unpaid",
            "paid_date": now[:10] if paid else None,
            "contribution_month": month,
            "contribution_year": year,
            "is_historical": True,
            "created_by": created_by,
        }, returning="representation").execute()
    )

    payment = None
    if paid and fee:
        payment = first_row(
            client.table("payments").insert({
                "residence_id": residence_id,
                "user_id": user_id,
                "profile_residence_id": link["id"],
                "apartment_number": apartment,
                "payment_type": "contribution",
                "fee_id": fee["id"],
                "amount": round(amount, 2),
                "method": payload.get("payment_method") or "cash",
                "status": "verified",
                "verified_by": created_by,
                "verified_at": now,
                "paid_at": now,
                "notes": f"Contribution {label} (historical)",
            }, returning="representation").execute()
        )

    return {"fee": fee, "payment": payment}
