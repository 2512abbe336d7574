# core/supabase_helpers.py

from typing import Any, Optional

from supabase import Client

from core.utils import sanitize
from core.errors import supabase_error
from core.logging_config import logger


# =================================================================
#  SAFE SELECT / INSERT / UPDATE for application tables
# =================================================================
# The client is passed in so one request reuses a single client
# (and tests can hand in a mock).
# =================================================================

def first_row(result) -> Optional[dict]:
    """First row of a PostgREST result, or None."""
    data = getattr(result, "data", None) if result is not None else None
    if isinstance(data, list):
        return data[0] if data else None
    return data or None


def safe_select(client: Client, table: str, filters: dict = None, *, columns: str = "*", single=False):
    """SELECT with equality filters."""
    try:
        query = client.table(table).select(columns)
        if filters:
            for key, val in filters.items():
                query = query.eq(key, val)

        if single:
            return first_row(query.limit(1).execute())
        return query.execute().data or []

    except Exception as e:
        supabase_error(e, f"Failed to fetch from {table}")


def safe_insert(client: Client, table: str, data: dict) -> Optional[dict]:
    """INSERT one row and return it."""
    cleaned = sanitize(data)

    try:
        result = (
            client.table(table)
            .insert(cleaned, returning="representation")
            .execute()
        )
        return first_row(result)

    except Exception as e:
        supabase_error(e, f"Failed to insert into {table}")


def safe_update(client: Client, table: str, filters: dict, data: dict) -> Optional[dict]:
    """UPDATE rows matching equality filters, return the first."""
    cleaned = sanitize(data)

    try:
        query = client.table(table).update(cleaned, returning="representation")
        for key, val in filters.items():
            query = query.eq(key, val)

        return first_row(query.execute())

    except Exception as e:
        supabase_error(e, f"Failed to update {table}")


def best_effort(description: str, func, *args, **kwargs) -> Any:
    """
    Run a statement whose failure must not abort a multi-step operation
    (cascading deletes, reference nulling). Failures are logged.
    """
    try:
        return func(*args, **kwargs)
    except Exception as e:
        logger.warning(f"{description} failed: {e}")
        return None


# =================================================================
#  SUPABASE AUTH ADMIN HELPERS
# =================================================================

def create_auth_user(client: Client, email: str, password: str = None, metadata: dict = None):
    """
    Create a Supabase Auth user. Password may be omitted for code-based
    onboarding; the email stays unconfirmed until the code is used.
    """
    payload = {
        "email": email,
        "email_confirm": False,
        "user_metadata": metadata or {},
    }
    if password:
        payload["password"] = password

    try:
        result = client.auth.admin.create_user(payload)
        return result.user

    except Exception as e:
        supabase_error(e, "Failed to create Supabase Auth user")


def delete_auth_user(client: Client, user_id: str) -> bool:
    try:
        client.auth.admin.delete_user(user_id)
        return True
    except Exception as e:
        logger.warning(f"Failed to delete auth user {user_id}: {e}")
        return False
