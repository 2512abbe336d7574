from fastapi import APIRouter, HTTPException, Depends, Request
from pydantic import BaseModel

from core.supabase_client import get_supabase_client
from core.rate_limiter import require_rate_limit
from core.logging_config import logger
from core.permission_helpers import get_user_residence_id
from core.utils import sanitize
from dependencies.auth import get_current_user, CurrentUser
from models.resident import ProfileUpdate


router = APIRouter(
    prefix="/auth",
    tags=["Auth"],
)


# ============================================================
# MODELS
# ============================================================
class LoginRequest(BaseModel):
    email: str
    password: str


# ============================================================
# LOGIN (SUPABASE AUTH)
# ============================================================
@router.post("/login", summary="Authenticate with email + password")
def login(payload: LoginRequest, request: Request):
    require_rate_limit(request, "login", max_requests=10, window_seconds=60)

    email = payload.email.strip().lower()

    client = get_supabase_client()
    if not client:
        raise HTTPException(500, "Supabase client not configured")

    try:
        response = client.auth.sign_in_with_password(
            {"email": email, "password": payload.password}
        )
    except Exception as e:
        logger.warning(f"Login attempt failed for {email}: {type(e).__name__}")
        raise HTTPException(401, "Invalid email or password")

    if not response.session or not response.session.access_token:
        raise HTTPException(401, "Invalid email or password")

    profile = (
        client.table("profiles")
        .select("role, full_name, onboarding_completed")
        .eq("id", response.user.id)
        .limit(1)
        .execute()
    ).data or []

    return {
        "success": True,
        "data": {
            "access_token": response.session.access_token,
            "refresh_token": response.session.refresh_token,
            "token_type": "bearer",
            "user_id": response.user.id,
            "role": profile[0]["role"] if profile else None,
            "onboarding_completed": bool(profile and profile[0].get("onboarding_completed")),
        },
    }


# ============================================================
# CURRENT PROFILE
# ============================================================
@router.get("/me", summary="Current user profile and residence")
def me(current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = get_user_residence_id(client, current_user)

    return {
        "success": True,
        "data": {
            **current_user.model_dump(),
            "residence_id": residence_id,
        },
    }


@router.patch("/me", summary="Update own profile")
def update_me(payload: ProfileUpdate, current_user: CurrentUser = Depends(get_current_user)):
    updates = sanitize(payload.model_dump(exclude_unset=True))
    if not updates:
        raise HTTPException(400, "No fields to update")

    client = get_supabase_client()
    try:
        result = client.table("profiles").update(updates).eq("id", current_user.id).execute()
        if "full_name" in updates:
            client.table("users").update({"name": updates["full_name"]}).eq("id", current_user.id).execute()
    except Exception as e:
        raise HTTPException(500, f"Profile update failed: {e}")

    return {"success": True, "data": result.data[0] if result.data else updates}
