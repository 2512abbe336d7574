# routers/residences.py

from fastapi import APIRouter, HTTPException, Depends
from fastapi.responses import Response

from core.cache import cache_delete_prefix, cached
from core.codes import generate_qr_code
from core.logging_config import logger
from core.permission_helpers import (
    require_syndic,
    require_syndic_residence,
    require_residence_access,
    get_user_residence_id,
)
from core.supabase_client import get_supabase_client
from core.supabase_helpers import first_row
from core.utils import sanitize, utc_now_iso
from dependencies.auth import get_current_user, CurrentUser
from models.residence import ResidenceCreate, ResidenceUpdate
from services.qr_codes import registration_url, render_qr_png, DEFAULT_BRAND_COLOR

router = APIRouter(
    prefix="/residences",
    tags=["Residences"],
)


def _load_residence(client, residence_id: int) -> dict:
    residence = first_row(
        client.table("residences").select("*").eq("id", residence_id).limit(1).execute()
    )
    if not residence:
        raise HTTPException(404, "Residence not found")
    return residence


def _own_residence(client, current_user: CurrentUser, residence_id: int) -> dict:
    own_id = require_syndic_residence(client, current_user)
    if str(own_id) != str(residence_id):
        raise HTTPException(403, "You do not manage this residence")
    return _load_residence(client, residence_id)


# -------------------------------------------------------------
# CREATE (syndic onboarding)
# -------------------------------------------------------------
@router.post("")
def create_residence(payload: ResidenceCreate, current_user: CurrentUser = Depends(get_current_user)):
    require_syndic(current_user, "Only syndics can create a residence")
    client = get_supabase_client()

    existing = first_row(
        client.table("residences").select("id").eq("syndic_user_id", current_user.id).limit(1).execute()
    )
    if existing:
        raise HTTPException(400, "You already manage a residence")

    try:
        result = (
            client.table("residences")
            .insert({**sanitize(payload.model_dump()), "syndic_user_id": current_user.id},
                    returning="representation")
            .execute()
        )
        if not result.data:
            raise HTTPException(500, "Residence creation failed - no data returned")
        client.table("profiles").update({"onboarding_completed": True}).eq("id", current_user.id).execute()
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(500, f"Residence creation failed: {e}")

    logger.info(f"Residence {result.data[0]['id']} created by syndic {current_user.id}")
    return {"success": True, "data": result.data[0]}


# -------------------------------------------------------------
# READ
# -------------------------------------------------------------
@router.get("/mine")
def my_residence(current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = get_user_residence_id(client, current_user)
    if not residence_id:
        return {"success": True, "data": None}
    return {"success": True, "data": _load_residence(client, residence_id)}


@router.get("/{residence_id}/total-apartments")
def total_apartments(residence_id: int, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    require_residence_access(client, current_user, residence_id)

    rows = (
        client.table("profile_residences")
        .select("apartment_number")
        .eq("residence_id", residence_id)
        .execute()
    ).data or []
    apartments = {r["apartment_number"] for r in rows if r.get("apartment_number")}
    return {"success": True, "data": {"total": len(apartments)}}


# -------------------------------------------------------------
# UPDATE
# -------------------------------------------------------------
@router.patch("/{residence_id}")
def update_residence(residence_id: int, payload: ResidenceUpdate,
                     current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    _own_residence(client, current_user, residence_id)

    updates = sanitize(payload.model_dump(exclude_unset=True))
    if not updates:
        raise HTTPException(400, "No fields to update")

    try:
        result = client.table("residences").update(updates).eq("id", residence_id).execute()
    except Exception as e:
        raise HTTPException(500, f"Residence update failed: {e}")

    cache_delete_prefix("residence_qr")
    return {"success": True, "data": result.data[0] if result.data else updates}


# -------------------------------------------------------------
# QR CODE
# -------------------------------------------------------------
def _qr_payload(residence: dict) -> dict:
    code = residence["onboarding_qr_code"]
    return {
        "code": code,
        "url": registration_url(code),
        "brandColor": residence.get("qr_brand_color") or DEFAULT_BRAND_COLOR,
        "generatedAt": residence.get("qr_code_generated_at"),
        "residenceName": residence.get("name"),
    }


def _assign_qr_code(client, residence_id: int) -> dict:
    updated = client.table("residences").update({
        "onboarding_qr_code": generate_qr_code(),
        "qr_code_generated_at": utc_now_iso(),
    }).eq("id", residence_id).execute()
    cache_delete_prefix("residence_qr")
    return updated.data[0] if updated.data else _load_residence(client, residence_id)


@router.get("/{residence_id}/qr-code")
def get_qr_code(residence_id: int, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence = _own_residence(client, current_user, residence_id)

    if not residence.get("onboarding_qr_code"):
        residence = _assign_qr_code(client, residence_id)

    return {"success": True, "data": _qr_payload(residence)}


@router.post("/{residence_id}/qr-code/regenerate")
def regenerate_qr_code(residence_id: int, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    _own_residence(client, current_user, residence_id)

    residence = _assign_qr_code(client, residence_id)
    logger.info(f"Residence {residence_id}: QR code regenerated")
    return {"success": True, "data": _qr_payload(residence)}


@cached(ttl_seconds=600, key_prefix="residence_qr")
def _qr_png(code: str, color: str) -> bytes:
    return render_qr_png(registration_url(code), color)


@router.get("/{residence_id}/qr-code.png")
def qr_code_png(residence_id: int, current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence = _own_residence(client, current_user, residence_id)

    if not residence.get("onboarding_qr_code"):
        residence = _assign_qr_code(client, residence_id)

    png = _qr_png(residence["onboarding_qr_code"], residence.get("qr_brand_color") or DEFAULT_BRAND_COLOR)
    return Response(content=png, media_type="image/png")
