# routers/stripe_webhooks.py

from datetime import datetime, timezone
from typing import Optional

import stripe
from fastapi import APIRouter, Request, HTTPException, Header

from core.config import settings
from core.logging_config import logger
from core.stripe_helpers import get_stripe_client, subscription_fields
from core.subscription_helpers import find_by_customer_id, upsert_stripe_customer
from core.supabase_client import get_supabase_client

router = APIRouter(
    prefix="/webhooks/stripe",
    tags=["Webhooks"],
)

SUBSCRIPTION_EVENTS = {
    "customer.subscription.created",
    "customer.subscription.updated",
    "customer.subscription.deleted",
}
INVOICE_PAID_EVENTS = {"invoice.payment_succeeded", "invoice.paid"}


def _ts(value) -> Optional[str]:
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc).isoformat()


def _user_for_customer(client, customer_id: Optional[str], metadata: Optional[dict] = None) -> Optional[str]:
    user_id = (metadata or {}).get("user_id")
    if user_id:
        return user_id
    if not customer_id:
        return None
    record = find_by_customer_id(client, customer_id)
    return record["user_id"] if record else None


def handle_checkout_completed(client, session: dict) -> dict:
    user_id = (session.get("metadata") or {}).get("user_id") or session.get("client_reference_id")
    customer_id = session.get("customer")
    subscription_id = session.get("subscription")
    if not user_id or not customer_id or not subscription_id:
        logger.warning(f"checkout.session.completed {session.get('id')} missing user/customer/subscription")
        return {"status": "ignored", "reason": "missing_ids"}

    subscription = get_stripe_client().Subscription.retrieve(subscription_id)
    fields = subscription_fields(subscription)
    fields["stripe_customer_id"] = customer_id
    upsert_stripe_customer(client, user_id, fields)
    return {"status": "processed", "user_id": user_id}


def handle_subscription_event(client, event_type: str, subscription: dict) -> dict:
    user_id = _user_for_customer(client, subscription.get("customer"), subscription.get("metadata"))
    if not user_id:
        return {"status": "ignored", "reason": "unknown_customer"}

    fields = subscription_fields(subscription)
    fields["stripe_customer_id"] = subscription.get("customer")
    if event_type == "customer.subscription.deleted":
        fields["plan_active"] = False
        fields["subscription_status"] = "canceled"
        fields["days_remaining"] = 0
    upsert_stripe_customer(client, user_id, fields)
    return {"status": "processed", "user_id": user_id}


def handle_invoice_event(client, event_type: str, invoice: dict) -> dict:
    user_id = _user_for_customer(client, invoice.get("customer"))
    if not user_id:
        return {"status": "ignored", "reason": "unknown_customer"}

    if event_type in INVOICE_PAID_EVENTS:
        fields = {"plan_active": True, "last_payment_at": _ts(invoice.get("status_transitions", {}).get("paid_at"))}
        subscription_id = invoice.get("subscription")
        if subscription_id:
            fields.update(subscription_fields(get_stripe_client().Subscription.retrieve(subscription_id)))
    else:
        fields = {"subscription_status": "past_due", "plan_active": False}

    upsert_stripe_customer(client, user_id, fields)
    return {"status": "processed", "user_id": user_id}


def handle_charge_refunded(client, charge: dict) -> dict:
    user_id = _user_for_customer(client, charge.get("customer"))
    if not user_id:
        return {"status": "ignored", "reason": "unknown_customer"}

    upsert_stripe_customer(client, user_id, {
        "last_refund_amount": (charge.get("amount_refunded") or 0) / 100,
        "last_refund_at": _ts(charge.get("created")),
    })
    return {"status": "processed", "user_id": user_id}


@router.post("")
async def handle_stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
):
    """
    Stripe webhook receiver.

    Events handled:
    - checkout.session.completed
    - customer.subscription.created / updated / deleted
    - invoice.payment_succeeded / invoice.paid / invoice.payment_failed
    - charge.refunded

    Each one updates the user's `stripe_customers` row. Unknown events
    are acknowledged and ignored.
    """
    if not stripe_signature:
        raise HTTPException(400, "Missing signature")
    if not settings.STRIPE_WEBHOOK_SECRET:
        raise HTTPException(500, "Webhook secret not configured")

    body = await request.body()
    try:
        event = stripe.Webhook.construct_event(body, stripe_signature, settings.STRIPE_WEBHOOK_SECRET)
    except ValueError as e:
        logger.error(f"Invalid payload in webhook: {e}")
        raise HTTPException(400, "Invalid payload")
    except stripe.SignatureVerificationError as e:
        logger.error(f"Invalid signature in webhook: {e}")
        raise HTTPException(400, "Webhook signature verification failed")

    event_type = event["type"]
    obj = event["data"]["object"]
    logger.info(f"Received Stripe webhook event: {event_type}")

    client = get_supabase_client()
    try:
        if event_type == "checkout.session.completed":
            result = handle_checkout_completed(client, obj)
        elif event_type in SUBSCRIPTION_EVENTS:
            result = handle_subscription_event(client, event_type, obj)
        elif event_type in INVOICE_PAID_EVENTS or event_type == "invoice.payment_failed":
            result = handle_invoice_event(client, event_type, obj)
        elif event_type == "charge.refunded":
            result = handle_charge_refunded(client, obj)
        else:
            result = {"status": "ignored", "reason": "unhandled_event"}
    except stripe.StripeError as e:
        logger.error(f"Stripe error while handling {event_type}: {e}")
        raise HTTPException(502, f"Stripe error: {e}")

    return {"received": True, "type": event_type, **result}
