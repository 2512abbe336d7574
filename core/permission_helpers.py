from fastapi import Depends, HTTPException
from typing import Optional
from supabase import Client

from dependencies.auth import get_current_user, CurrentUser
from core.permissions import ROLE_PERMISSIONS
from core.supabase_helpers import first_row


# -----------------------------------------------------
# Permissions come from the role alone
# -----------------------------------------------------
def get_effective_permissions(user: CurrentUser) -> set:
    return set(ROLE_PERMISSIONS.get(user.role, []))


def has_permission(user: CurrentUser, permission: str) -> bool:
    effective = get_effective_permissions(user)

    if "*" in effective:
        return True

    return permission in effective


# -----------------------------------------------------
# FastAPI dependency wrapper
# -----------------------------------------------------
def requires_permission(permission: str):
    """
    Usage:
        @router.post("", dependencies=[Depends(requires_permission("fees:write"))])
    """

    def dependency(current_user: CurrentUser = Depends(get_current_user)):
        if not has_permission(current_user, permission):
            raise HTTPException(
                status_code=403,
                detail=f"Insufficient permissions: '{permission}' required"
            )
        return current_user

    return dependency


# ============================================================
# ROLE HELPERS
# ============================================================

def is_syndic(user: CurrentUser) -> bool:
    return user.role == "syndic"


def require_syndic(user: CurrentUser, message: str = "Only syndics can perform this action"):
    if not is_syndic(user):
        raise HTTPException(status_code=403, detail=message)


# ============================================================
# RESIDENCE-LEVEL HELPERS
# ============================================================

def get_user_residence_id(client: Client, user: CurrentUser) -> Optional[int]:
    """
    Residence the user belongs to:
      syndic   → residences.syndic_user_id
      guard    → residences.guard_user_id
      resident → first profile_residences link
    """
    if user.role == "syndic":
        row = first_row(
            client.table("residences").select("id").eq("syndic_user_id", user.id).limit(1).execute()
        )
        return row["id"] if row else None

    if user.role == "guard":
        row = first_row(
            client.table("residences").select("id").eq("guard_user_id", user.id).limit(1).execute()
        )
        return row["id"] if row else None

    if user.role == "resident":
        row = first_row(
            client.table("profile_residences")
            .select("residence_id")
            .eq("profile_id", user.id)
            .limit(1)
            .execute()
        )
        return row["residence_id"] if row else None

    return None


def require_syndic_residence(client: Client, user: CurrentUser) -> int:
    """Residence id managed by the calling syndic (403 / 404 otherwise)."""
    require_syndic(user)
    residence_id = get_user_residence_id(client, user)
    if not residence_id:
        raise HTTPException(404, "No residence found for this syndic")
    return residence_id


def require_residence_access(client: Client, user: CurrentUser, residence_id) -> int:
    """
    Ensure the user belongs to `residence_id`.
    Syndics and guards must manage it; residents must be linked to it.
    """
    if user.role == "admin":
        return residence_id

    if user.role == "resident":
        link = first_row(
            client.table("profile_residences")
            .select("id")
            .eq("profile_id", user.id)
            .eq("residence_id", residence_id)
            .limit(1)
            .execute()
        )
        if link:
            return residence_id
    else:
        own = get_user_residence_id(client, user)
        if own is not None and str(own) == str(residence_id):
            return residence_id

    raise HTTPException(403, "You do not have access to this residence")
