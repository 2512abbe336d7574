# routers/residents.py

from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Query

from core.codes import generate_onboarding_code, expires_in, ONBOARDING_CODE_TTL_DAYS
from core.email_utils import send_welcome_code
from core.errors import handle_supabase_error
from core.logging_config import logger
from core.permission_helpers import require_syndic_residence, get_user_residence_id
from core.supabase_client import get_supabase_client
from core.supabase_helpers import first_row, create_auth_user
from core.utils import sanitize, to_amount
from dependencies.auth import get_current_user, CurrentUser
from models.resident import ResidentCreate, ResidentUpdate

router = APIRouter(
    prefix="/residents",
    tags=["Residents"],
)


def apartment_taken(client, residence_id: int, apartment_number: str, exclude_profile: Optional[str] = None) -> bool:
    rows = (
        client.table("profile_residences")
        .select("profile_id")
        .eq("residence_id", residence_id)
        .eq("apartment_number", apartment_number)
        .execute()
    ).data or []
    return any(r["profile_id"] != exclude_profile for r in rows)


def _link(client, residence_id: int, profile_id: str) -> dict:
    link = first_row(
        client.table("profile_residences")
        .select("*")
        .eq("residence_id", residence_id)
        .eq("profile_id", profile_id)
        .limit(1)
        .execute()
    )
    if not link:
        raise HTTPException(404, "Resident not found in your residence")
    return link


# -------------------------------------------------------------
# LIST
# -------------------------------------------------------------
@router.get("")
def list_residents(
    search: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
):
    client = get_supabase_client()
    if current_user.role == "guard":
        residence_id = get_user_residence_id(client, current_user)
        if not residence_id:
            raise HTTPException(404, "No residence assigned")
    else:
        residence_id = require_syndic_residence(client, current_user)

    try:
        links = (
            client.table("profile_residences")
            .select("id, profile_id, apartment_number, verified, profiles(full_name, phone_number, role, verified)")
            .eq("residence_id", residence_id)
            .execute()
        ).data or []

        profile_ids = [l["profile_id"] for l in links]
        users = []
        unpaid = []
        if profile_ids:
            users = (
                client.table("users").select("id, email").in_("id", profile_ids).execute()
            ).data or []
            unpaid = (
                client.table("fees").select("user_id, amount")
                .eq("residence_id", residence_id).eq("status", "unpaid").execute()
            ).data or []
    except Exception as e:
        raise HTTPException(500, f"Unable to fetch residents: {e}")

    emails = {u["id"]: u["email"] for u in users}
    outstanding = {}
    for fee in unpaid:
        outstanding[fee["user_id"]] = outstanding.get(fee["user_id"], 0.0) + to_amount(fee["amount"])

    residents = []
    for link in links:
        profile = link.get("profiles") or {}
        row = {
            "id": link["profile_id"],
            "profile_residence_id": link["id"],
            "full_name": profile.get("full_name"),
            "email": emails.get(link["profile_id"]),
            "phone_number": profile.get("phone_number"),
            "apartment_number": link.get("apartment_number"),
            "verified": bool(link.get("verified")),
            "outstanding_fees": round(outstanding.get(link["profile_id"], 0.0), 2),
        }
        if search:
            needle = search.lower()
            haystack = " ".join(str(row.get(k) or "") for k in ("full_name", "email", "apartment_number")).lower()
            if needle not in haystack:
                continue
        residents.append(row)

    residents.sort(key=lambda r: str(r.get("apartment_number") or ""))
    return {"success": True, "data": residents}


# -------------------------------------------------------------
# CHECKS (form validation helpers)
# -------------------------------------------------------------
@router.get("/check-apartment")
def check_apartment(apartment_number: str, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    return {"success": True, "data": {"available": not apartment_taken(client, residence_id, apartment_number)}}


@router.get("/check-email")
def check_email(email: str, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    require_syndic_residence(client, current_user)
    user = first_row(
        client.table("users").select("id").eq("email", email.strip().lower()).limit(1).execute()
    )
    return {"success": True, "data": {"exists": bool(user)}}


# -------------------------------------------------------------
# CREATE
# -------------------------------------------------------------
@router.post("")
def create_resident(payload: ResidentCreate, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)

    email = payload.email.strip().lower()
    apartment = payload.apartment_number.strip()

    if apartment_taken(client, residence_id, apartment):
        raise HTTPException(400, f"Apartment {apartment} is already assigned")

    existing = first_row(client.table("users").select("id").eq("email", email).limit(1).execute())
    created_auth = False
    if existing:
        user_id = existing["id"]
    else:
        auth_user = create_auth_user(client, email, metadata={"full_name": payload.full_name})
        user_id = auth_user.id
        created_auth = True

    code = generate_onboarding_code()
    try:
        if not existing:
            client.table("users").insert({"id": user_id, "email": email, "name": payload.full_name}).execute()
        client.table("profiles").upsert({
            "id": user_id,
            "full_name": payload.full_name,
            "phone_number": payload.phone_number,
            "role": "resident",
            "resident_onboarding_code": code,
            "resident_onboarding_code_expires_at": expires_in(days=ONBOARDING_CODE_TTL_DAYS),
        }).execute()
        link = client.table("profile_residences").insert({
            "profile_id": user_id,
            "residence_id": residence_id,
            "apartment_number": apartment,
            "verified": False,
        }).execute()
    except Exception as e:
        if created_auth:
            client.table("profiles").delete().eq("id", user_id).execute()
            client.table("users").delete().eq("id", user_id).execute()
            client.auth.admin.delete_user(user_id)
        raise handle_supabase_error(e, "Failed to create resident")

    residence = first_row(client.table("residences").select("name").eq("id", residence_id).limit(1).execute()) or {}
    send_welcome_code(email, payload.full_name, residence.get("name", "SAKAN"), apartment, code)

    logger.info(f"Resident {user_id} added to residence {residence_id} (apt {apartment})")
    return {
        "success": True,
        "data": {"id": user_id, "email": email, "profile_residence": link.data[0] if link.data else None},
    }


# -------------------------------------------------------------
# UPDATE
# -------------------------------------------------------------
@router.patch("/{profile_id}")
def update_resident(profile_id: str, payload: ResidentUpdate, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    link = _link(client, residence_id, profile_id)

    data = sanitize(payload.model_dump(exclude_unset=True))
    profile_updates = {k: data[k] for k in ("full_name", "phone_number") if k in data}
    link_updates = {k: data[k] for k in ("apartment_number", "verified") if k in data}

    if "apartment_number" in link_updates and apartment_taken(
        client, residence_id, link_updates["apartment_number"], exclude_profile=profile_id
    ):
        raise HTTPException(400, f"Apartment {link_updates['apartment_number']} is already assigned")

    try:
        if profile_updates:
            client.table("profiles").update(profile_updates).eq("id", profile_id).execute()
        if link_updates:
            client.table("profile_residences").update(link_updates).eq("id", link["id"]).execute()
    except Exception as e:
        raise handle_supabase_error(e, "Failed to update resident")

    return {"success": True, "data": {"id": profile_id, **profile_updates, **link_updates}}


# -------------------------------------------------------------
# REMOVE FROM RESIDENCE
# -------------------------------------------------------------
@router.delete("/{profile_id}")
def remove_resident(profile_id: str, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = require_syndic_residence(client, current_user)
    link = _link(client, residence_id, profile_id)

    unpaid = (
        client.table("fees").select("id")
        .eq("residence_id", residence_id).eq("user_id", profile_id).eq("status", "unpaid")
        .execute()
    ).data or []
    if unpaid:
        raise HTTPException(400, f"Resident still has {len(unpaid)} unpaid fee(s)")

    try:
        client.table("profile_residences").delete().eq("id", link["id"]).execute()
    except Exception as e:
        raise HTTPException(500, f"Failed to remove resident: {e}")

    logger.info(f"Resident {profile_id} removed from residence {residence_id}")
    return {"success": True, "data": {"id": profile_id}}
