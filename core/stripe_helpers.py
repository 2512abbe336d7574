# core/stripe_helpers.py

from typing import Optional, Dict, Any, List, Tuple
from datetime import datetime, timezone

import stripe
from fastapi import HTTPException

from core.cache import cached
from core.config import settings
from core.logging_config import logger

MIN_PRICE_ID_LENGTH = 20
PLACEHOLDER_MARKERS = ("xxx", "placeholder", "your_price", "price_id")

# Order matters: live subscriptions are cancelled before lingering ones
CANCELLABLE_STATUSES = ["active", "trialing", "past_due", "incomplete", "incomplete_expired"]


def get_stripe_client():
    """Configured stripe module (500 when no secret key)."""
    if not settings.STRIPE_SECRET_KEY:
        raise HTTPException(500, "Stripe secret key not configured")

    stripe.api_key = settings.STRIPE_SECRET_KEY
    return stripe


# ============================================================
# Prices
# ============================================================
def is_placeholder_price(price_id: Optional[str]) -> bool:
    if not price_id or len(price_id) < MIN_PRICE_ID_LENGTH:
        return True
    lowered = price_id.lower()
    return any(marker in lowered for marker in PLACEHOLDER_MARKERS)


@cached(ttl_seconds=3600, key_prefix="stripe_price")
def get_price(price_id: str) -> Optional[Dict[str, Any]]:
    """
    Price summary, or None when Stripe does not know the id.
    Other Stripe errors propagate.
    """
    stripe_client = get_stripe_client()
    try:
        price = stripe_client.Price.retrieve(price_id)
    except stripe.InvalidRequestError as e:
        if getattr(e, "code", None) == "resource_missing":
            logger.warning(f"Stripe price {price_id} does not exist")
            return None
        raise

    recurring = price.get("recurring") or {}
    return {
        "id": price["id"],
        "unit_amount": price.get("unit_amount") or 0,
        "currency": price.get("currency"),
        "interval": recurring.get("interval"),
        "nickname": price.get("nickname"),
        "product": price.get("product"),
    }


def classify_plan_change(current_amount: Optional[int], new_amount: Optional[int]) -> str:
    """upgrade / downgrade by unit amount. Unknown amounts count as an upgrade."""
    if current_amount is None or new_amount is None:
        return "upgrade"
    return "downgrade" if new_amount < current_amount else "upgrade"


# ============================================================
# Subscriptions
# ============================================================
def subscription_fields(subscription: Dict[str, Any]) -> Dict[str, Any]:
    """Map a Stripe subscription object onto stripe_customers columns."""
    items = (subscription.get("items") or {}).get("data") or []
    price = items[0].get("price") if items else {}
    price = price or {}
    recurring = price.get("recurring") or {}
    status = subscription.get("status")

    period_end = subscription.get("current_period_end")
    if period_end is None and items:
        period_end = items[0].get("current_period_end")

    expires = None
    days_remaining = None
    if period_end:
        expires_dt = datetime.fromtimestamp(int(period_end), tz=timezone.utc)
        expires = expires_dt.isoformat()
        days_remaining = max((expires_dt - datetime.now(timezone.utc)).days, 0)

    return {
        "subscription_id": subscription.get("id"),
        "subscription_status": status,
        "plan_active": status in ("active", "trialing"),
        "plan_expires": expires,
        "days_remaining": days_remaining,
        "price_id": price.get("id"),
        "plan_name": price.get("nickname") or price.get("product"),
        "amount": (price.get("unit_amount") or 0) / 100,
        "currency": price.get("currency"),
        "interval": recurring.get("interval"),
    }


def cancel_customer_subscriptions(stripe_customer_id: Optional[str]) -> Tuple[List[str], List[str]]:
    """
    Cancel every cancellable subscription of a customer.

    Returns (cancelled_ids, errors). Never raises: callers run this
    before deleting an account and must continue regardless.
    """
    cancelled: List[str] = []
    errors: List[str] = []

    if not stripe_customer_id:
        return cancelled, errors
    if not settings.STRIPE_SECRET_KEY:
        errors.append("Stripe not configured")
        return cancelled, errors

    stripe_client = get_stripe_client()
    for status in CANCELLABLE_STATUSES:
        try:
            subscriptions = stripe_client.Subscription.list(customer=stripe_customer_id, status=status, limit=100)
        except stripe.StripeError as e:
            errors.append(f"list {status}: {e}")
            continue

        for sub in subscriptions.auto_paging_iter():
            if sub["id"] in cancelled:
                continue
            try:
                stripe_client.Subscription.cancel(sub["id"])
                cancelled.append(sub["id"])
            except stripe.StripeError as e:
                errors.append(f"cancel {sub['id']}: {e}")

    if errors:
        logger.warning(f"Stripe cancellation issues for {stripe_customer_id}: {errors}")
    logger.info(f"Cancelled {len(cancelled)} subscription(s) for {stripe_customer_id}")
    return cancelled, errors
