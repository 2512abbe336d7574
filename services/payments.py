# services/payments.py

from typing import Dict, Any, List

from fastapi import HTTPException
from supabase import Client

from core.logging_config import logger
from core.supabase_helpers import first_row
from core.utils import to_amount, utc_now_iso
from services.ledger import record_transaction


def contribution_status(amount_paid: float, amount_due: float) -> str:
    return "paid" if amount_paid >= amount_due else "partial"


def apply_to_contribution(client: Client, contribution: Dict[str, Any], amount: float) -> Dict[str, Any]:
    new_paid = round(to_amount(contribution.get("amount_paid")) + amount, 2)
    status = contribution_status(new_paid, to_amount(contribution.get("amount_due")))
    update = {"amount_paid": new_paid, "status": status}
    if status == "paid":
        update["paid_date"] = utc_now_iso()[:10]

    client.table("contributions").update(update).eq("id", contribution["id"]).execute()
    return {**contribution, **update}


def mark_fee_paid(client: Client, fee_id):
    client.table("fees").update({
        "status": "paid",
        "paid_date": utc_now_iso()[:10],
    }).eq("id", fee_id).execute()


# ============================================================
# Verify
# ============================================================
def verify_payment(client: Client, payment: Dict[str, Any], verified_by: str) -> Dict[str, Any]:
    """
    pending → verified, then settle what the payment points at and
    append the income to the ledger.
    """
    if payment.get("status") == "verified":
        raise HTTPException(400, "Payment already verified")
    if payment.get("status") in ("rejected", "cancelled"):
        raise HTTPException(400, f"Cannot verify a {payment['status']} payment")

    now = utc_now_iso()
    update = {"status": "verified", "verified_by": verified_by, "verified_at": now}
    if not payment.get("paid_at"):
        update["paid_at"] = now

    result = (
        client.table("payments")
        .update(update, returning="representation")
        .eq("id", payment["id"])
        .execute()
    )
    verified = first_row(result) or {**payment, **update}
    amount = to_amount(payment.get("amount"))

    if payment.get("fee_id"):
        mark_fee_paid(client, payment["fee_id"])

    if payment.get("contribution_id"):
        contribution = first_row(
            client.table("contributions").select("*").eq("id", payment["contribution_id"]).limit(1).execute()
        )
        if contribution:
            apply_to_contribution(client, contribution, amount)

    record_transaction(
        client,
        residence_id=payment["residence_id"],
        transaction_type="income",
        amount=amount,
        reference_table="payments",
        reference_id=payment["id"],
        method=payment.get("method"),
        description=f"{payment.get('payment_type', 'payment')} payment verified",
        created_by=verified_by,
    )
    return verified


# ============================================================
# Allocate
# ============================================================
def allocate_payment(client: Client, payment: Dict[str, Any], allocations: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Spread a verified payment over contributions and fees.
    Allocations that are non-positive or exceed what is left are skipped;
    any remainder is recorded as a credit in the payment notes.
    """
    if payment.get("status") != "verified":
        raise HTTPException(400, "Only verified payments can be allocated")

    amount = to_amount(payment.get("amount"))
    requested = round(sum(float(a.get("amount") or 0) for a in allocations), 2)
    if requested > amount:
        raise HTTPException(400, f"Total allocation ({requested:.2f}) exceeds payment amount ({amount:.2f})")

    remaining = amount
    applied = []
    skipped = []
    link = {}

    for allocation in allocations:
        value = round(float(allocation.get("amount") or 0), 2)
        if value <= 0 or value > remaining:
            skipped.append({**allocation, "reason": "invalid amount"})
            continue

        if allocation["type"] == "contribution":
            contribution = first_row(
                client.table("contributions").select("*")
                .eq("id", allocation["id"]).eq("residence_id", payment["residence_id"])
                .limit(1).execute()
            )
            if not contribution:
                skipped.append({**allocation, "reason": "contribution not found"})
                continue
            updated = apply_to_contribution(client, contribution, value)
            applied.append({"type": "contribution", "id": contribution["id"], "amount": value,
                            "status": updated["status"]})
            if not payment.get("contribution_id") and "contribution_id" not in link:
                link["contribution_id"] = contribution["id"]

        elif allocation["type"] == "fee":
            fee = first_row(
                client.table("fees").select("*")
                .eq("id", allocation["id"]).eq("residence_id", payment["residence_id"])
                .limit(1).execute()
            )
            if not fee:
                skipped.append({**allocation, "reason": "fee not found"})
                continue
            mark_fee_paid(client, fee["id"])
            applied.append({"type": "fee", "id": fee["id"], "amount": value, "status": "paid"})
            if not payment.get("fee_id") and "fee_id" not in link:
                link["fee_id"] = fee["id"]

        remaining = round(remaining - value, 2)

    update = dict(link)
    if remaining > 0:
        credit_note = f"Credit: {remaining:.2f} MAD"
        notes = payment.get("notes")
        update["notes"] = f"{notes}\n{credit_note}" if notes else credit_note

    if update:
        client.table("payments").update(update).eq("id", payment["id"]).execute()

    logger.info(f"Payment {payment['id']}: allocated {amount - remaining:.2f}, credit {remaining:.2f}")
    return {"allocated": applied, "skipped": skipped, "remaining_credit": remaining}


# ============================================================
# Outstanding / balances
# ============================================================
def outstanding_for_user(client: Client, residence_id: int, user_id: str) -> Dict[str, Any]:
    links = (
        client.table("profile_residences").select("id")
        .eq("residence_id", residence_id).eq("profile_id", user_id).execute()
    ).data or []
    link_ids = [l["id"] for l in links]

    contributions = []
    if link_ids:
        contributions = (
            client.table("contributions").select("*")
            .in_("profile_residence_id", link_ids)
            .in_("status", ["pending", "partial", "overdue"])
            .order("due_date")
            .execute()
        ).data or []

    fees = (
        client.table("fees").select("*")
        .eq("residence_id", residence_id).eq("user_id", user_id).eq("status", "unpaid")
        .order("due_date")
        .execute()
    ).data or []

    contributions_total = round(sum(
        to_amount(c.get("amount_due")) - to_amount(c.get("amount_paid")) for c in contributions
    ), 2)
    fees_total = round(sum(to_amount(f.get("amount")) for f in fees), 2)

    return {
        "contributions": contributions,
        "fees": fees,
        "totals": {
            "contributions": contributions_total,
            "fees": fees_total,
            "total": round(contributions_total + fees_total, 2),
        },
    }


def apartment_balances(client: Client, residence_id: int) -> List[Dict[str, Any]]:
    """Outstanding and paid totals per apartment."""
    links = (
        client.table("profile_residences")
        .select("id, profile_id, apartment_number, profiles(full_name)")
        .eq("residence_id", residence_id)
        .execute()
    ).data or []
    fees = (
        client.table("fees").select("user_id, amount, status")
        .eq("residence_id", residence_id).execute()
    ).data or []
    contributions = (
        client.table("contributions").select("profile_residence_id, amount_due, amount_paid, status")
        .eq("residence_id", residence_id).execute()
    ).data or []
    payments = (
        client.table("payments").select("user_id, amount")
        .eq("residence_id", residence_id).eq("status", "verified").execute()
    ).data or []

    balances = []
    for link in links:
        user_fees = [f for f in fees if f["user_id"] == link["profile_id"]]
        user_contribs = [c for c in contributions if c["profile_residence_id"] == link["id"]]
        outstanding = sum(to_amount(f["amount"]) for f in user_fees if f["status"] == "unpaid")
        outstanding += sum(
            to_amount(c["amount_due"]) - to_amount(c["amount_paid"])
            for c in user_contribs if c["status"] in ("pending", "partial", "overdue")
        )
        paid = sum(to_amount(p["amount"]) for p in payments if p["user_id"] == link["profile_id"])
        balances.append({
            "profile_id": link["profile_id"],
            "apartment_number": link.get("apartment_number"),
            "full_name": (link.get("profiles") or {}).get("full_name"),
            "outstanding": round(outstanding, 2),
            "total_paid": round(paid, 2),
        })
    return balances
