# services/financial.py

from datetime import date
from typing import Dict, Any, List, Optional

from fastapi import HTTPException
from supabase import Client

from core.logging_config import logger
from core.supabase_helpers import first_row
from core.utils import month_bounds, to_amount, parse_date
from services.payments import outstanding_for_user

CASH_SHARE = 0.3
BANK_SHARE = 0.7


# ============================================================
# Pure aggregation helpers
# ============================================================
def summarize_income(payments: List[Dict[str, Any]]) -> Dict[str, float]:
    contributions = sum(to_amount(p["amount"]) for p in payments if p.get("payment_type") == "contribution")
    fees = sum(to_amount(p["amount"]) for p in payments if p.get("payment_type") in ("fee", "fine"))
    return {
        "contributions": round(contributions, 2),
        "fees": round(fees, 2),
        "total": round(contributions + fees, 2),
    }


def expense_breakdown(expenses: List[Dict[str, Any]], categories: Dict[Any, str]) -> List[Dict[str, Any]]:
    """Totals by category name with percentage of all expenses."""
    totals: Dict[str, float] = {}
    for e in expenses:
        name = categories.get(e.get("category_id")) or "Uncategorized"
        totals[name] = totals.get(name, 0.0) + to_amount(e.get("amount"))

    grand_total = sum(totals.values())
    breakdown = [
        {
            "category": name,
            "amount": round(amount, 2),
            "percentage": round(amount / grand_total * 100, 1) if grand_total else 0.0,
        }
        for name, amount in totals.items()
    ]
    return sorted(breakdown, key=lambda row: row["amount"], reverse=True)


# ============================================================
# Queries
# ============================================================
def _category_names(client: Client, residence_id: int) -> Dict[Any, str]:
    rows = (
        client.table("expense_categories").select("id, name").eq("residence_id", residence_id).execute()
    ).data or []
    return {r["id"]: r["name"] for r in rows}


def _verified_payments(client: Client, residence_id: int, start: date, end: date) -> List[Dict[str, Any]]:
    return (
        client.table("payments")
        .select("id, amount, payment_type, paid_at")
        .eq("residence_id", residence_id)
        .eq("status", "verified")
        .gte("paid_at", start.isoformat())
        .lte("paid_at", f"{end.isoformat()}T23:59:59.999999")
        .execute()
    ).data or []


def _paid_expenses(client: Client, residence_id: int, start: date, end: date) -> List[Dict[str, Any]]:
    return (
        client.table("expenses")
        .select("id, amount, category_id, expense_date")
        .eq("residence_id", residence_id)
        .eq("status", "paid")
        .gte("expense_date", start.isoformat())
        .lte("expense_date", end.isoformat())
        .execute()
    ).data or []


def opening_balance(client: Client, residence_id: int, before: date) -> float:
    snapshot = first_row(
        client.table("balance_snapshots")
        .select("total_balance, snapshot_date")
        .eq("residence_id", residence_id)
        .lt("snapshot_date", before.isoformat())
        .order("snapshot_date", desc=True)
        .limit(1)
        .execute()
    )
    return to_amount(snapshot.get("total_balance")) if snapshot else 0.0


def cash_and_bank(client: Client, residence_id: int) -> Dict[str, float]:
    """Money held in cash vs in the bank, from verified payments and paid expenses."""
    payments = (
        client.table("payments").select("amount, method")
        .eq("residence_id", residence_id).eq("status", "verified").execute()
    ).data or []
    expenses = (
        client.table("expenses").select("amount, payment_method")
        .eq("residence_id", residence_id).eq("status", "paid").execute()
    ).data or []

    # rows without a recorded method are counted against the cash box
    cash_in = sum(to_amount(p["amount"]) for p in payments if p.get("method") in (None, "cash"))
    bank_in = sum(to_amount(p["amount"]) for p in payments if p.get("method") not in (None, "cash"))
    cash_out = sum(to_amount(e["amount"]) for e in expenses if e.get("payment_method") in (None, "cash"))
    bank_out = sum(to_amount(e["amount"]) for e in expenses if e.get("payment_method") not in (None, "cash"))

    return {
        "cash_on_hand": round(cash_in - cash_out, 2),
        "bank_balance": round(bank_in - bank_out, 2),
    }


def monthly_report(client: Client, residence_id: int, year: int, month: int,
                   categories: Optional[Dict[Any, str]] = None) -> Dict[str, Any]:
    start, end = month_bounds(year, month)
    if categories is None:
        categories = _category_names(client, residence_id)

    payments = _verified_payments(client, residence_id, start, end)
    expenses = _paid_expenses(client, residence_id, start, end)

    income = summarize_income(payments)
    total_expenses = round(sum(to_amount(e["amount"]) for e in expenses), 2)
    opening = opening_balance(client, residence_id, start)
    net = round(income["total"] - total_expenses, 2)

    return {
        "year": year,
        "month": month,
        "period_start": start.isoformat(),
        "period_end": end.isoformat(),
        "opening_balance": opening,
        "income": income,
        "expenses": {
            "total": total_expenses,
            "by_category": expense_breakdown(expenses, categories),
        },
        "net_change": net,
        "closing_balance": round(opening + net, 2),
        "payment_count": len(payments),
        "expense_count": len(expenses),
    }


def annual_report(client: Client, residence_id: int, year: int) -> Dict[str, Any]:
    categories = _category_names(client, residence_id)
    months = [monthly_report(client, residence_id, year, m, categories) for m in range(1, 13)]

    year_expenses = _paid_expenses(client, residence_id, date(year, 1, 1), date(year, 12, 31))

    total_income = round(sum(m["income"]["total"] for m in months), 2)
    total_expenses = round(sum(m["expenses"]["total"] for m in months), 2)
    return {
        "year": year,
        "months": months,
        "totals": {
            "income": total_income,
            "contributions": round(sum(m["income"]["contributions"] for m in months), 2),
            "fees": round(sum(m["income"]["fees"] for m in months), 2),
            "expenses": total_expenses,
            "net_change": round(total_income - total_expenses, 2),
        },
        "expense_by_category": expense_breakdown(year_expenses, categories),
    }


# ============================================================
# Unit balance (one resident)
# ============================================================
def unit_balance(client: Client, residence_id: int, user_id: str) -> Dict[str, Any]:
    outstanding = outstanding_for_user(client, residence_id, user_id)

    payments = (
        client.table("payments")
        .select("*")
        .eq("residence_id", residence_id)
        .eq("user_id", user_id)
        .eq("status", "verified")
        .order("paid_at", desc=True)
        .execute()
    ).data or []

    credit = 0.0
    for p in payments:
        for line in (p.get("notes") or "").splitlines():
            if line.startswith("Credit: ") and line.endswith(" MAD"):
                try:
                    credit += float(line[len("Credit: "):-len(" MAD")])
                except ValueError:
                    pass

    items = [
        {
            "type": "contribution",
            "id": c["id"],
            "label": f"{c.get('period_start')} - {c.get('period_end')}",
            "amount_due": round(to_amount(c.get("amount_due")) - to_amount(c.get("amount_paid")), 2),
            "due_date": c.get("due_date"),
            "status": c.get("status"),
        }
        for c in outstanding["contributions"]
    ] + [
        {
            "type": "fee",
            "id": f["id"],
            "label": f.get("title"),
            "amount_due": to_amount(f.get("amount")),
            "due_date": f.get("due_date"),
            "status": f.get("status"),
        }
        for f in outstanding["fees"]
    ]
    items.sort(key=lambda i: parse_date(i["due_date"]) or date.max)

    total_paid = round(sum(to_amount(p["amount"]) for p in payments), 2)
    return {
        "summary": {
            "total_outstanding": outstanding["totals"]["total"],
            "outstanding_contributions": outstanding["totals"]["contributions"],
            "outstanding_fees": outstanding["totals"]["fees"],
            "total_paid": total_paid,
            "credit": round(credit, 2),
            "net_balance": round(outstanding["totals"]["total"] - credit, 2),
        },
        "outstanding_items": items,
        "recent_payments": payments[:10],
    }


# ============================================================
# Close month (balance snapshot)
# ============================================================
def close_month(client: Client, residence_id: int, year: int, month: int, created_by: str,
                cash_balance: Optional[float] = None, bank_balance: Optional[float] = None,
                notes: Optional[str] = None) -> Dict[str, Any]:
    start, end = month_bounds(year, month)

    existing = (
        client.table("balance_snapshots")
        .select("id")
        .eq("residence_id", residence_id)
        .eq("period_start", start.isoformat())
        .limit(1)
        .execute()
    )
    if existing.data:
        raise HTTPException(400, f"{start.strftime('%m/%Y')} has already been closed")

    report = monthly_report(client, residence_id, year, month)
    balance = report["closing_balance"]

    outstanding_contributions = (
        client.table("contributions").select("amount_due, amount_paid")
        .eq("residence_id", residence_id).in_("status", ["pending", "partial", "overdue"])
        .lte("due_date", end.isoformat()).execute()
    ).data or []
    outstanding_fees = (
        client.table("fees").select("amount")
        .eq("residence_id", residence_id).eq("status", "unpaid")
        .lte("due_date", end.isoformat()).execute()
    ).data or []

    cash = round(cash_balance if cash_balance is not None else balance * CASH_SHARE, 2)
    bank = round(bank_balance if bank_balance is not None else balance * BANK_SHARE, 2)

    snapshot = {
        "residence_id": residence_id,
        "snapshot_date": end.isoformat(),
        "period_start": start.isoformat(),
        "period_end": end.isoformat(),
        "cash_balance": cash,
        "bank_balance": bank,
        "total_balance": round(cash + bank, 2),
        "total_contributions_collected": report["income"]["contributions"],
        "total_fees_collected": report["income"]["fees"],
        "total_expenses": report["expenses"]["total"],
        "net_change": report["net_change"],
        "outstanding_contributions": round(sum(
            to_amount(c["amount_due"]) - to_amount(c["amount_paid"]) for c in outstanding_contributions
        ), 2),
        "outstanding_fees": round(sum(to_amount(f["amount"]) for f in outstanding_fees), 2),
        "notes": notes,
        "created_by": created_by,
    }

    result = client.table("balance_snapshots").insert(snapshot, returning="representation").execute()
    logger.info(f"Residence {residence_id}: closed {start} - {end}, balance {snapshot['total_balance']}")
    return first_row(result) or snapshot
