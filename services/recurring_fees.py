# services/recurring_fees.py

"""
Recurring fee rules: coverage period math, fee generation for every
resident of a residence, and marking generated fees paid.
"""

from datetime import date, timedelta
from typing import Dict, Any, List, Optional

from fastapi import HTTPException
from supabase import Client

from core.logging_config import logger
from core.supabase_helpers import first_row
from core.utils import add_months, parse_date, to_amount, utc_now_iso
from services.ledger import record_transaction
from services.receipts import build_payment_receipt
from core.email_utils import send_payment_receipt


# ============================================================
# Period math
# ============================================================
def advance_period(start: date, value: int, period_type: str) -> date:
    """First day of the next coverage period."""
    if period_type == "week":
        return start + timedelta(days=7 * value)
    if period_type == "month":
        return add_months(start, value)
    if period_type == "year":
        return add_months(start, 12 * value)
    raise ValueError(f"Unknown coverage period type: {period_type}")


def coverage_end(start: date, value: int, period_type: str) -> date:
    """Last covered day: the day before the next period starts."""
    return advance_period(start, value, period_type) - timedelta(days=1)


def generated_fee_title(title: str, start: date, end: date, value: int, period_type: str) -> str:
    # A plain monthly rule keeps its title
    if value > 1 or period_type != "month":
        return f"{title} (Covers {start.isoformat()} - {end.isoformat()})"
    return title


def build_rule_row(residence_id: int, created_by: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    start = parse_date(payload["start_date"])
    value = int(payload.get("coverage_period_value") or 1)
    period_type = str(payload.get("coverage_period_type") or "month")

    return {
        **payload,
        "residence_id": residence_id,
        "coverage_period_value": value,
        "coverage_period_type": period_type,
        "start_date": start.isoformat(),
        "next_due_date": start.isoformat(),
        "coverage_end_date": coverage_end(start, value, period_type).isoformat(),
        "is_active": True,
        "created_by": created_by,
    }


# ============================================================
# Generation
# ============================================================
def generate_fees_for_rule(client: Client, rule: Dict[str, Any], created_by: str) -> Dict[str, Any]:
    """
    Create one unpaid fee per resident for the rule's current period,
    then roll the rule forward one period.
    """
    residence_id = rule["residence_id"]
    due = parse_date(rule["next_due_date"])
    value = int(rule.get("coverage_period_value") or 1)
    period_type = rule.get("coverage_period_type") or "month"
    end = coverage_end(due, value, period_type)

    residents = (
        client.table("profile_residences")
        .select("profile_id, id, apartment_number")
        .eq("residence_id", residence_id)
        .execute()
    ).data or []

    if not residents:
        raise HTTPException(400, "No residents found")

    title = generated_fee_title(rule["title"], due, end, value, period_type)
    created = 0
    skipped = 0

    for resident in residents:
        existing = (
            client.table("fees")
            .select("id")
            .eq("recurring_setting_id", rule["id"])
            .eq("user_id", resident["profile_id"])
            .eq("due_date", due.isoformat())
            .limit(1)
            .execute()
        )
        if existing.data:
            skipped += 1
            continue

        client.table("fees").insert({
            "residence_id": residence_id,
            "user_id": resident["profile_id"],
            "profile_residence_id": resident.get("id"),
            "apartment_number": resident.get("apartment_number"),
            "title": title,
            "amount": to_amount(rule["amount"]),
            "due_date": due.isoformat(),
            "status": "unpaid",
            "fee_type": "one_time",
            "recurring_setting_id": rule["id"],
            "created_by": created_by,
        }).execute()
        created += 1

    next_due = advance_period(due, value, period_type)
    client.table("recurring_fee_settings").update({
        "next_due_date": next_due.isoformat(),
        "coverage_end_date": coverage_end(next_due, value, period_type).isoformat(),
    }).eq("id", rule["id"]).execute()

    logger.info(
        f"Recurring rule {rule['id']}: {created} fee(s) created, {skipped} skipped, next due {next_due}"
    )
    return {
        "count": created,
        "skipped": skipped,
        "period_start": due.isoformat(),
        "period_end": end.isoformat(),
        "next_due_date": next_due.isoformat(),
    }


# ============================================================
# Mark paid
# ============================================================
def _load_fees(client: Client, fee_ids: List[int], residence_id: int) -> List[Dict[str, Any]]:
    fees = (
        client.table("fees")
        .select("*")
        .in_("id", fee_ids)
        .eq("residence_id", residence_id)
        .execute()
    ).data or []

    if len(fees) != len(set(fee_ids)):
        raise HTTPException(404, "One or more fees were not found in your residence")
    return fees


def mark_fees_paid(
    client: Client,
    fee_ids: List[int],
    residence_id: int,
    verified_by: str,
    method: str = "cash",
    reference_number: Optional[str] = None,
    notes: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Record one verified payment covering the given fees of a single
    resident, mark the fees paid and email a PDF receipt.
    """
    fees = _load_fees(client, fee_ids, residence_id)

    already_paid = [f for f in fees if f.get("status") == "paid"]
    if already_paid:
        if len(fees) == 1:
            raise HTTPException(400, "Fee already paid")
        raise HTTPException(400, f"{len(already_paid)} fee(s) already paid")

    user_ids = {f["user_id"] for f in fees}
    if len(user_ids) != 1:
        raise HTTPException(400, "All fees must belong to the same resident")
    user_id = user_ids.pop()

    total = round(sum(to_amount(f["amount"]) for f in fees), 2)
    now = utc_now_iso()
    first = fees[0]

    payment = first_row(
        client.table("payments").insert({
            "residence_id": residence_id,
            "user_id": user_id,
            "profile_residence_id": first.get("profile_residence_id"),
            "apartment_number": first.get("apartment_number"),
            "payment_type": "fee",
            "fee_id": first["id"] if len(fees) == 1 else None,
            "amount": total,
            "method": method,
            "status": "verified",
            "reference_number": reference_number,
            "notes": notes or ", ".join(f["title"] for f in fees),
            "verified_by": verified_by,
            "verified_at": now,
            "paid_at": now,
        }, returning="representation").execute()
    )
    if not payment:
        raise HTTPException(500, "Payment creation failed - no data returned")

    client.table("fees").update({
        "status": "paid",
        "paid_date": now[:10],
    }).in_("id", [f["id"] for f in fees]).execute()

    record_transaction(
        client,
        residence_id=residence_id,
        transaction_type="income",
        amount=total,
        reference_table="payments",
        reference_id=payment["id"],
        method=method,
        description=f"Fee payment: {', '.join(f['title'] for f in fees)}",
        created_by=verified_by,
    )

    receipt_number = f"PAY-{payment['id']}"
    _send_receipt(client, payment, fees, residence_id, user_id, receipt_number)

    return {
        "payment_id": payment["id"],
        "receipt_number": receipt_number,
        "amount": total,
        "fee_ids": [f["id"] for f in fees],
    }


def _send_receipt(client: Client, payment: dict, fees: list, residence_id: int,
                  user_id: str, receipt_number: str):
    """PDF + email. Never fails the payment."""
    try:
        residence = first_row(
            client.table("residences").select("name, address, city").eq("id", residence_id).limit(1).execute()
        ) or {}
        profile = first_row(
            client.table("profiles").select("full_name").eq("id", user_id).limit(1).execute()
        ) or {}
        user = first_row(
            client.table("users").select("email").eq("id", user_id).limit(1).execute()
        ) or {}

        if not user.get("email"):
            logger.warning(f"No email for user {user_id}, receipt {receipt_number} not sent")
            return

        pdf_bytes = None
        try:
            pdf_bytes = build_payment_receipt(
                receipt_number=receipt_number,
                residence=residence,
                resident_name=profile.get("full_name"),
                apartment_number=payment.get("apartment_number"),
                items=[{"title": f["title"], "amount": to_amount(f["amount"])} for f in fees],
                total=to_amount(payment["amount"]),
                method=payment.get("method"),
                paid_at=payment.get("paid_at"),
            )
        except Exception as e:
            logger.error(f"Receipt PDF generation failed for {receipt_number}: {e}")

        send_payment_receipt(
            to=user["email"],
            residence_name=residence.get("name", "SAKAN"),
            resident_name=profile.get("full_name"),
            amount=to_amount(payment["amount"]),
            receipt_number=receipt_number,
            pdf_bytes=pdf_bytes,
            payment_id=payment["id"],
        )
    except Exception as e:
        logger.warning(f"Receipt for {receipt_number} not delivered: {e}")
