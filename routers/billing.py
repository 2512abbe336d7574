# routers/billing.py

from typing import Optional

import stripe
from fastapi import APIRouter, Depends, HTTPException, Request

from core.config import settings
from core.logging_config import logger
from core.stripe_helpers import (
    get_stripe_client,
    get_price,
    is_placeholder_price,
    classify_plan_change,
    subscription_fields,
    MIN_PRICE_ID_LENGTH,
)
from core.subscription_helpers import get_stripe_customer, has_active_plan, upsert_stripe_customer
from core.supabase_client import get_supabase_client
from dependencies.auth import get_current_user, CurrentUser
from models.billing import CheckoutRequest, SubscriptionUpdateRequest, RefundRequest

router = APIRouter(
    prefix="/billing",
    tags=["Billing"],
)

PRORATION_BEHAVIORS = {"create_prorations", "none", "always_invoice"}


def _origin(request: Request) -> str:
    return (request.headers.get("origin") or settings.APP_URL).rstrip("/")


def _error(status_code: int, code: str, message: str):
    raise HTTPException(status_code, {"code": code, "message": message})


def _active_subscription(client, user_id: str) -> dict:
    record = get_stripe_customer(client, user_id)
    if not has_active_plan(record):
        _error(400, "no_active_subscription", "No active subscription")
    return record


def _validate_new_price(price_id: Optional[str]) -> dict:
    if not price_id or not price_id.startswith("price_") or len(price_id) < MIN_PRICE_ID_LENGTH:
        _error(400, "invalid_price_id", "Invalid price id")
    price = get_price(price_id)
    if not price:
        _error(400, "invalid_price_id", "Price not found in Stripe")
    return price


# -----------------------------------------------------
# Checkout + portal
# -----------------------------------------------------
@router.post("/checkout")
def create_checkout_session(payload: CheckoutRequest, request: Request,
                            current_user: CurrentUser = Depends(get_current_user)):
    if not payload.price_id:
        raise HTTPException(400, "priceId is required")
    if is_placeholder_price(payload.price_id):
        _error(400, "price_not_configured", "This plan is not configured yet")

    stripe_client = get_stripe_client()
    if not get_price(payload.price_id):
        _error(400, "invalid_price_id", "Price not found in Stripe")

    client = get_supabase_client()
    record = get_stripe_customer(client, current_user.id)
    if has_active_plan(record):
        _error(400, "already_subscribed", "You already have an active subscription")

    origin = _origin(request)
    params = {
        "mode": "subscription",
        "line_items": [{"price": payload.price_id, "quantity": 1}],
        "success_url": f"{origin}/app",
        "cancel_url": f"{origin}/cancel",
        "client_reference_id": current_user.id,
        "metadata": {"user_id": current_user.id},
        "subscription_data": {"metadata": {"user_id": current_user.id}},
    }
    if record and record.get("stripe_customer_id"):
        params["customer"] = record["stripe_customer_id"]
    else:
        params["customer_email"] = current_user.email

    try:
        session = stripe_client.checkout.Session.create(**params)
    except stripe.StripeError as e:
        logger.error(f"Checkout session failed for {current_user.id}: {e}")
        raise HTTPException(502, f"Stripe error: {e}")

    return {"success": True, "data": {"url": session["url"], "id": session["id"]}}


@router.post("/portal")
def create_portal_session(request: Request, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    record = get_stripe_customer(client, current_user.id)
    if not record or not record.get("stripe_customer_id"):
        raise HTTPException(404, "No billing account found")

    stripe_client = get_stripe_client()
    try:
        session = stripe_client.billing_portal.Session.create(
            customer=record["stripe_customer_id"],
            return_url=f"{_origin(request)}/app/billing",
        )
    except stripe.StripeError as e:
        raise HTTPException(502, f"Stripe error: {e}")
    return {"success": True, "data": {"url": session["url"]}}


# -----------------------------------------------------
# Subscription
# -----------------------------------------------------
@router.get("/subscription")
def get_subscription(current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    record = get_stripe_customer(client, current_user.id)
    return {"success": True, "data": record}


@router.get("/subscription/preview")
def preview_subscription_change(new_price_id: str, current_user: CurrentUser = Depends(get_current_user)):
    """Proration preview for switching the active subscription to another price."""
    client = get_supabase_client()
    record = _active_subscription(client, current_user.id)
    new_price = _validate_new_price(new_price_id)
    if record.get("price_id") == new_price_id:
        _error(400, "same_plan", "You are already on this plan")

    stripe_client = get_stripe_client()
    try:
        subscription = stripe_client.Subscription.retrieve(record["subscription_id"])
        item_id = subscription["items"]["data"][0]["id"]
        invoice = stripe_client.Invoice.create_preview(
            customer=record["stripe_customer_id"],
            subscription=record["subscription_id"],
            subscription_details={
                "items": [{"id": item_id, "price": new_price_id}],
                "proration_behavior": "create_prorations",
            },
        )
    except stripe.StripeError as e:
        raise HTTPException(502, f"Stripe error: {e}")

    current_price = get_price(record["price_id"]) if record.get("price_id") else None
    return {
        "success": True,
        "data": {
            "change": classify_plan_change(
                current_price and current_price["unit_amount"], new_price["unit_amount"]
            ),
            "amount_due": (invoice.get("amount_due") or 0) / 100,
            "currency": invoice.get("currency"),
            "new_price": new_price,
        },
    }


@router.post("/subscription/update")
def update_subscription(payload: SubscriptionUpdateRequest, current_user: CurrentUser = Depends(get_current_user)):
    if payload.proration_behavior not in PRORATION_BEHAVIORS:
        raise HTTPException(400, f"prorationBehavior must be one of {sorted(PRORATION_BEHAVIORS)}")

    client = get_supabase_client()
    record = _active_subscription(client, current_user.id)
    new_price = _validate_new_price(payload.new_price_id)
    if record.get("price_id") == payload.new_price_id:
        _error(400, "same_plan", "You are already on this plan")

    current_price = get_price(record["price_id"]) if record.get("price_id") else None
    change = classify_plan_change(current_price and current_price["unit_amount"], new_price["unit_amount"])

    stripe_client = get_stripe_client()
    try:
        subscription = stripe_client.Subscription.retrieve(record["subscription_id"])
        item_id = subscription["items"]["data"][0]["id"]
        updated = stripe_client.Subscription.modify(
            record["subscription_id"],
            items=[{"id": item_id, "price": payload.new_price_id}],
            proration_behavior=payload.proration_behavior,
        )
    except stripe.StripeError as e:
        logger.error(f"Subscription update failed for {current_user.id}: {e}")
        raise HTTPException(502, f"Stripe error: {e}")

    row = upsert_stripe_customer(client, current_user.id, subscription_fields(updated))
    logger.info(f"User {current_user.id} {change}d to {payload.new_price_id}")
    return {"success": True, "data": {"change": change, "subscription": row}}


@router.post("/refund")
def refund_subscription(payload: RefundRequest, current_user: CurrentUser = Depends(get_current_user)):
    """Refund the latest paid invoice of the user's subscription, fully or partially."""
    client = get_supabase_client()
    record = get_stripe_customer(client, current_user.id) or {}
    own_subscription = record.get("subscription_id")
    if payload.subscription_id and payload.subscription_id != own_subscription:
        logger.warning(f"User {current_user.id} asked a refund for foreign subscription {payload.subscription_id}")
        raise HTTPException(403, "Subscription does not belong to this account")

    subscription_id = own_subscription
    if not subscription_id:
        raise HTTPException(404, "No subscription to refund")

    stripe_client = get_stripe_client()
    try:
        invoices = stripe_client.Invoice.list(subscription=subscription_id, status="paid", limit=1)
        if not invoices["data"]:
            raise HTTPException(400, "No paid invoice found")
        invoice = invoices["data"][0]

        charge = invoice.get("charge")
        params = {"reason": "requested_by_customer"}
        if charge:
            params["charge"] = charge
        elif invoice.get("payment_intent"):
            params["payment_intent"] = invoice["payment_intent"]
        else:
            raise HTTPException(400, "Invoice has no charge to refund")

        if payload.amount:
            params["amount"] = int(round(payload.amount * 100))
        refund = stripe_client.Refund.create(**params)
    except stripe.StripeError as e:
        raise HTTPException(502, f"Stripe error: {e}")

    logger.info(f"Refund {refund['id']} issued for user {current_user.id}")
    return {
        "success": True,
        "data": {
            "id": refund["id"],
            "amount": (refund.get("amount") or 0) / 100,
            "status": refund.get("status"),
        },
    }
