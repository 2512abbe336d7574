# routers/payments.py

from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Query

from core.errors import handle_supabase_error
from core.logging_config import logger
from core.permission_helpers import require_syndic_residence, get_user_residence_id, requires_permission
from core.supabase_client import get_supabase_client
from core.supabase_helpers import first_row
from core.utils import sanitize, utc_now_iso
from dependencies.auth import get_current_user, CurrentUser
from models.payment import PaymentSubmit, CashPaymentCreate, PaymentReject, PaymentAllocate
from services.ledger import record_transaction
from services.payments import (
    verify_payment,
    allocate_payment,
    outstanding_for_user,
    apartment_balances,
    mark_fee_paid,
    apply_to_contribution,
)

router = APIRouter(
    prefix="/payments",
    tags=["Payments"],
)

can_record = requires_permission("payments:write")
can_verify = requires_permission("payments:verify")


def _load_payment(client, payment_id: int, residence_id: int) -> dict:
    payment = first_row(
        client.table("payments").select("*")
        .eq("id", payment_id).eq("residence_id", residence_id).limit(1).execute()
    )
    if not payment:
        raise HTTPException(404, "Payment not found")
    return payment


def _resident_link(client, residence_id: int, user_id: str) -> dict:
    link = first_row(
        client.table("profile_residences").select("id, apartment_number")
        .eq("residence_id", residence_id).eq("profile_id", user_id).limit(1).execute()
    )
    if not link:
        raise HTTPException(404, "Resident not found in this residence")
    return link


# -------------------------------------------------------------
# LIST / GET
# -------------------------------------------------------------
@router.get("")
def list_payments(
    status: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()

    if current_user.role == "syndic":
        residence_id = require_syndic_residence(client, current_user)
        query = client.table("payments").select("*").eq("residence_id", residence_id)
        if user_id:
            query = query.eq("user_id", user_id)
    elif current_user.role == "resident":
        residence_id = get_user_residence_id(client, current_user)
        if not residence_id:
            return {"success": True, "data": []}
        query = client.table("payments").select("*").eq("residence_id", residence_id).eq("user_id", current_user.id)
    else:
        raise HTTPException(403, "You do not have access to payments")

    if status:
        query = query.eq("status", status)

    try:
        result = query.order("created_at", desc=True).limit(limit).execute()
    except Exception as e:
        raise HTTPException(500, f"Unable to fetch payments: {e}")
    return {"success": True, "data": result.data or []}


@router.get("/outstanding")
def outstanding(
    user_id: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Residents see their own dues; syndics pass ?user_id=."""
    client = get_supabase_client()
    if current_user.role == "syndic":
        if not user_id:
            raise HTTPException(400, "user_id is required")
        residence_id = require_syndic_residence(client, current_user)
        target = user_id
    else:
        residence_id = get_user_residence_id(client, current_user)
        if not residence_id:
            raise HTTPException(404, "No residence found")
        target = current_user.id

    return {"success": True, "data": outstanding_for_user(client, residence_id, target)}


@router.get("/balances")
def balances(current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    return {"success": True, "data": apartment_balances(client, residence_id)}


@router.get("/{payment_id}")
def get_payment(payment_id: int, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = get_user_residence_id(client, current_user)
    if not residence_id:
        raise HTTPException(404, "Payment not found")

    payment = _load_payment(client, payment_id, residence_id)
    if current_user.role != "syndic" and payment["user_id"] != current_user.id:
        raise HTTPException(404, "Payment not found")
    return {"success": True, "data": payment}


# -------------------------------------------------------------
# CREATE
# -------------------------------------------------------------
@router.post("")
def submit_payment(payload: PaymentSubmit, current_user: CurrentUser = Depends(get_current_user)):
    """Resident declares a payment; it stays pending until the syndic verifies it."""
    if current_user.role != "resident":
        raise HTTPException(403, "Only residents can submit payments")

    client = get_supabase_client()
    residence_id = get_user_residence_id(client, current_user)
    if not residence_id:
        raise HTTPException(404, "No residence found")
    link = _resident_link(client, residence_id, current_user.id)

    if payload.fee_id:
        fee = first_row(
            client.table("fees").select("id, user_id, status")
            .eq("id", payload.fee_id).eq("residence_id", residence_id).limit(1).execute()
        )
        if not fee or fee["user_id"] != current_user.id:
            raise HTTPException(404, "Fee not found")
        if fee["status"] == "paid":
            raise HTTPException(400, "Fee already paid")

    data = sanitize(payload.model_dump(mode="json"))
    try:
        result = client.table("payments").insert({
            **data,
            "residence_id": residence_id,
            "user_id": current_user.id,
            "profile_residence_id": link["id"],
            "apartment_number": link.get("apartment_number"),
            "status": "pending",
            "paid_at": utc_now_iso(),
        }, returning="representation").execute()
    except Exception as e:
        raise handle_supabase_error(e, "Failed to submit payment")

    return {"success": True, "data": first_row(result)}


@router.post("/cash")
def create_cash_payment(payload: CashPaymentCreate, current_user: CurrentUser = Depends(can_record)):
    """Syndic records money received in hand. Verified immediately."""
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    link = _resident_link(client, residence_id, payload.user_id)

    if payload.fee_id:
        fee = first_row(
            client.table("fees").select("id, status")
            .eq("id", payload.fee_id)
            .eq("residence_id", residence_id)
            .eq("user_id", payload.user_id)
            .limit(1).execute()
        )
        if not fee:
            raise HTTPException(404, "Fee not found")
        if fee["status"] == "paid":
            raise HTTPException(400, "Fee already paid")

    contribution = None
    if payload.contribution_id:
        contribution = first_row(
            client.table("contributions").select("*")
            .eq("id", payload.contribution_id)
            .eq("residence_id", residence_id)
            .eq("profile_residence_id", link["id"])
            .limit(1).execute()
        )
        if not contribution:
            raise HTTPException(404, "Contribution not found")

    now = utc_now_iso()
    data = sanitize(payload.model_dump(mode="json"))
    try:
        payment = first_row(client.table("payments").insert({
            **data,
            "residence_id": residence_id,
            "profile_residence_id": link["id"],
            "apartment_number": link.get("apartment_number"),
            "status": "verified",
            "verified_by": current_user.id,
            "verified_at": now,
            "paid_at": now,
        }, returning="representation").execute())
    except Exception as e:
        raise handle_supabase_error(e, "Failed to record payment")

    if payload.fee_id:
        mark_fee_paid(client, payload.fee_id)
    if contribution:
        apply_to_contribution(client, contribution, payload.amount)

    record_transaction(
        client,
        residence_id=residence_id,
        transaction_type="income",
        amount=payload.amount,
        reference_table="payments",
        reference_id=payment["id"] if payment else None,
        method=str(payload.method),
        description=f"Cash {payload.payment_type} payment",
        created_by=current_user.id,
    )
    return {"success": True, "data": payment}


# -------------------------------------------------------------
# REVIEW
# -------------------------------------------------------------
@router.post("/{payment_id}/verify")
def verify(payment_id: int, current_user: CurrentUser = Depends(can_verify)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    payment = _load_payment(client, payment_id, residence_id)

    verified = verify_payment(client, payment, current_user.id)
    logger.info(f"Payment {payment_id} verified by {current_user.id}")
    return {"success": True, "data": verified}


@router.post("/{payment_id}/reject")
def reject(payment_id: int, payload: PaymentReject, current_user: CurrentUser = Depends(can_verify)):
    if not payload.reason or not payload.reason.strip():
        raise HTTPException(400, "A rejection reason is required")

    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    payment = _load_payment(client, payment_id, residence_id)
    if payment["status"] != "pending":
        raise HTTPException(400, f"Only pending payments can be rejected (status: {payment['status']})")

    result = client.table("payments").update({
        "status": "rejected",
        "rejection_reason": payload.reason.strip(),
        "verified_by": current_user.id,
        "verified_at": utc_now_iso(),
    }).eq("id", payment_id).execute()
    return {"success": True, "data": first_row(result) or {**payment, "status": "rejected"}}


@router.post("/{payment_id}/allocate")
def allocate(payment_id: int, payload: PaymentAllocate, current_user: CurrentUser = Depends(can_verify)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    payment = _load_payment(client, payment_id, residence_id)

    result = allocate_payment(client, payment, [a.model_dump() for a in payload.allocations])
    return {"success": True, "data": result}
