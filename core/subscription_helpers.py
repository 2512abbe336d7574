# core/subscription_helpers.py

"""
Read/write helpers for the stripe_customers table (one row per user).
"""

from typing import Optional, Dict, Any
from supabase import Client

from core.logging_config import logger
from core.supabase_helpers import first_row
from core.utils import utc_now_iso


def get_stripe_customer(client: Client, user_id: str) -> Optional[Dict[str, Any]]:
    try:
        return first_row(
            client.table("stripe_customers").select("*").eq("user_id", user_id).limit(1).execute()
        )
    except Exception as e:
        logger.error(f"Error fetching stripe customer for user {user_id}: {e}")
        return None


def find_by_customer_id(client: Client, stripe_customer_id: str) -> Optional[Dict[str, Any]]:
    return first_row(
        client.table("stripe_customers")
        .select("*")
        .eq("stripe_customer_id", stripe_customer_id)
        .limit(1)
        .execute()
    )


def has_active_plan(record: Optional[Dict[str, Any]]) -> bool:
    return bool(record and record.get("plan_active") and record.get("subscription_id"))


def upsert_stripe_customer(client: Client, user_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Insert or update the user's stripe_customers row."""
    data = {k: v for k, v in fields.items() if v is not None or k == "plan_expires"}
    data["updated_at"] = utc_now_iso()

    existing = get_stripe_customer(client, user_id)
    if existing:
        result = client.table("stripe_customers").update(data).eq("user_id", user_id).execute()
    else:
        result = client.table("stripe_customers").insert({"user_id": user_id, **data}).execute()

    logger.info(f"stripe_customers updated for user {user_id}: {sorted(data.keys())}")
    return first_row(result)
