# services/account_deletion.py

"""
Account teardown and syndic hand-over.

Tables reference profiles without ON DELETE CASCADE, so rows are removed
or detached child-first. Each statement is best effort: a failure is
logged and the teardown continues, since a half-deleted account is
worse than a few orphaned rows.
"""

from typing import Dict, Any, List, Optional
from urllib.parse import unquote

from supabase import Client

from core.config import settings
from core.logging_config import logger
from core.stripe_helpers import cancel_customer_subscriptions
from core.subscription_helpers import get_stripe_customer
from core.supabase_helpers import best_effort, delete_auth_user

SYNDIC_DOCUMENTS_PREFIX = "syndic-documents"

# Residence-owned tables, children first
RESIDENCE_TABLES = [
    "transaction_history",
    "balance_snapshots",
    "expenses",
    "payments",
    "fees",
    "incidents",
    "deliveries",
    "access_logs",
    "announcements",
]


def _delete(client: Client, table: str, column: str, value):
    best_effort(
        f"delete {table}.{column}={value}",
        lambda: client.table(table).delete().eq(column, value).execute(),
    )


def _null(client: Client, table: str, column: str, value):
    best_effort(
        f"null {table}.{column}={value}",
        lambda: client.table(table).update({column: None}).eq(column, value).execute(),
    )


def _move(client: Client, table: str, column: str, old, new):
    best_effort(
        f"move {table}.{column} {old} -> {new}",
        lambda: client.table(table).update({column: new}).eq(column, old).execute(),
    )


# ============================================================
# Stripe
# ============================================================
def cancel_user_subscriptions(client: Client, user_id: str) -> Dict[str, Any]:
    record = get_stripe_customer(client, user_id)
    if not record or not record.get("stripe_customer_id"):
        return {"cancelled": [], "errors": []}

    try:
        cancelled, errors = cancel_customer_subscriptions(record["stripe_customer_id"])
    except Exception as e:
        logger.error(f"Subscription cancellation failed for {user_id}: {e}")
        cancelled, errors = [], [str(e)]
    return {"cancelled": cancelled, "errors": errors}


# ============================================================
# Storage
# ============================================================
def storage_path_from_url(url: Optional[str], bucket: str) -> Optional[str]:
    """
    Object path inside `bucket` for a public/signed storage URL or a raw path.
    """
    if not url:
        return None
    marker = f"/{bucket}/"
    if marker in url:
        path = url.split(marker, 1)[1]
    elif url.startswith("http"):
        return None
    else:
        path = url
    return unquote(path.split("?", 1)[0]).lstrip("/")


def delete_syndic_documents(client: Client, user_id: str):
    """Remove submission files from storage, then the submission rows."""
    bucket = settings.STORAGE_BUCKET
    submissions = best_effort(
        "load syndic_document_submissions",
        lambda: client.table("syndic_document_submissions")
        .select("id, document_url, id_card_url")
        .eq("user_id", user_id)
        .execute()
        .data,
    ) or []

    paths: List[str] = []
    for s in submissions:
        for url in (s.get("document_url"), s.get("id_card_url")):
            path = storage_path_from_url(url, bucket)
            if path:
                paths.append(path)

    if paths:
        best_effort(
            f"remove {len(paths)} storage file(s)",
            lambda: client.storage.from_(bucket).remove(paths),
        )

    _delete(client, "syndic_document_submissions", "user_id", user_id)


# ============================================================
# Residence teardown
# ============================================================
def other_residents(client: Client, residence_id: int, syndic_id: str) -> List[Dict[str, Any]]:
    rows = (
        client.table("profile_residences")
        .select("profile_id, apartment_number")
        .eq("residence_id", residence_id)
        .execute()
    ).data or []
    return [r for r in rows if r["profile_id"] != syndic_id]


def delete_residence(client: Client, residence_id: int):
    for table in RESIDENCE_TABLES:
        _delete(client, table, "residence_id", residence_id)

    polls = best_effort(
        "load polls",
        lambda: client.table("polls").select("id").eq("residence_id", residence_id).execute().data,
    ) or []
    poll_ids = [p["id"] for p in polls]
    if poll_ids:
        best_effort("delete poll_votes", lambda: client.table("poll_votes").delete().in_("poll_id", poll_ids).execute())
        best_effort("delete poll_options", lambda: client.table("poll_options").delete().in_("poll_id", poll_ids).execute())
    _delete(client, "polls", "residence_id", residence_id)
    _delete(client, "notifications", "residence_id", residence_id)

    _null(client, "syndic_document_submissions", "assigned_residence_id", residence_id)

    # Money tables not tied to a fee/payment row directly
    for table in ("contributions", "contribution_plans", "recurring_fee_settings",
                  "expense_categories", "resident_registration_requests", "access_codes",
                  "syndic_deletion_requests"):
        _delete(client, table, "residence_id", residence_id)

    _delete(client, "profile_residences", "residence_id", residence_id)
    _delete(client, "residences", "id", residence_id)
    logger.info(f"Residence {residence_id} deleted")


# ============================================================
# User teardown
# ============================================================
def delete_user_account(client: Client, user_id: str) -> Dict[str, Any]:
    _null(client, "residences", "syndic_user_id", user_id)
    _null(client, "residences", "guard_user_id", user_id)

    for table, column in (
        ("profile_residences", "profile_id"),
        ("notifications", "user_id"),
        ("poll_votes", "user_id"),
        ("verification_tokens", "identifier"),
    ):
        _delete(client, table, column, user_id)

    for table in ("announcements", "expenses", "polls", "balance_snapshots"):
        _null(client, table, "created_by", user_id)
    _null(client, "payments", "verified_by", user_id)
    _null(client, "incidents", "assigned_to", user_id)

    _delete(client, "deliveries", "recipient_id", user_id)
    _delete(client, "payments", "user_id", user_id)
    _delete(client, "fees", "user_id", user_id)
    _delete(client, "incidents", "user_id", user_id)
    _delete(client, "access_logs", "generated_by", user_id)

    delete_syndic_documents(client, user_id)

    _delete(client, "stripe_customers", "user_id", user_id)
    _delete(client, "profiles", "id", user_id)
    _delete(client, "users", "id", user_id)
    _delete(client, "accounts", "userId", user_id)
    _delete(client, "sessions", "userId", user_id)

    auth_deleted = delete_auth_user(client, user_id)
    logger.info(f"User {user_id} deleted (auth user removed: {auth_deleted})")
    return {"user_id": user_id, "auth_deleted": auth_deleted}


def delete_syndic_account(client: Client, user_id: str, residence_id: Optional[int]) -> Dict[str, Any]:
    """
    Syndic self-deletion: cancel billing, drop the residence when nobody
    else lives there (otherwise leave it without a syndic), then delete
    the user.
    """
    subscriptions = cancel_user_subscriptions(client, user_id)

    residence_deleted = False
    if residence_id:
        if other_residents(client, residence_id, user_id):
            _null(client, "residences", "syndic_user_id", user_id)
        else:
            delete_residence(client, residence_id)
            residence_deleted = True

    result = delete_user_account(client, user_id)
    return {**result, "residence_deleted": residence_deleted, "subscriptions": subscriptions}


# ============================================================
# Syndic replacement
# ============================================================
def transfer_syndic_data(client: Client, old_id: str, new_id: str, residence_id: int):
    """Re-point everything the outgoing syndic owns to the replacement."""
    best_effort(
        "move residence syndic",
        lambda: client.table("residences").update({"syndic_user_id": new_id}).eq("id", residence_id).execute(),
    )

    for table, column in (
        ("fees", "user_id"),
        ("payments", "user_id"),
        ("payments", "verified_by"),
        ("incidents", "user_id"),
        ("incidents", "assigned_to"),
        ("announcements", "created_by"),
        ("expenses", "created_by"),
        ("polls", "created_by"),
        ("poll_votes", "user_id"),
        ("access_logs", "generated_by"),
        ("access_logs", "scanned_by"),
        ("deliveries", "recipient_id"),
        ("deliveries", "logged_by"),
    ):
        _move(client, table, column, old_id, new_id)

    best_effort(
        "promote replacement",
        lambda: client.table("profiles").update({"role": "syndic", "verified": True}).eq("id", new_id).execute(),
    )
    logger.info(f"Residence {residence_id}: syndic data moved {old_id} -> {new_id}")
