from typing import Optional
from datetime import datetime, timedelta, timezone
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from pydantic import BaseModel
from supabase import Client

from core.config import settings
from core.logging_config import logger
from core.supabase_client import get_supabase_client
from core.supabase_helpers import first_row
from core.permissions import ROLE_PERMISSIONS  # role → permission map
from core.utils import parse_datetime


bearer_scheme = HTTPBearer()

MOBILE_TOKEN_TYPE = "mobile"
JWT_ALGORITHM = "HS256"
ADMIN_SESSION_COOKIE = "admin_session"
ADMIN_SESSION_HEADER = "X-Admin-Session"


# ============================================================
# Current User Model (profile-backed identity)
# ============================================================
class CurrentUser(BaseModel):
    id: str
    email: str
    role: str

    full_name: Optional[str] = None
    phone_number: Optional[str] = None
    verified: bool = False
    onboarding_completed: bool = False


class CurrentAdmin(BaseModel):
    id: str
    email: str
    full_name: Optional[str] = None
    session_token: str


# ============================================================
# Mobile tokens (issued after OTP verification)
# ============================================================
def create_mobile_token(user_id: str, email: str) -> str:
    if not settings.MOBILE_JWT_SECRET:
        raise HTTPException(500, "Mobile authentication not configured")

    now = datetime.now(timezone.utc)
    claims = {
        "sub": user_id,
        "email": email,
        "typ": MOBILE_TOKEN_TYPE,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(days=settings.MOBILE_JWT_EXPIRE_DAYS)).timestamp()),
    }
    return jwt.encode(claims, settings.MOBILE_JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_mobile_token(token: str) -> Optional[dict]:
    """Claims of a valid mobile token, or None if it is not one."""
    if not settings.MOBILE_JWT_SECRET:
        return None
    try:
        claims = jwt.decode(token, settings.MOBILE_JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError:
        return None
    if claims.get("typ") != MOBILE_TOKEN_TYPE or not claims.get("sub"):
        return None
    return claims


# ============================================================
# Profile lookup shared by both token kinds
# ============================================================
def load_current_user(client: Client, user_id: str, email: Optional[str]) -> Optional[CurrentUser]:
    profile = first_row(
        client.table("profiles")
        .select("id, full_name, phone_number, role, verified, onboarding_completed")
        .eq("id", user_id)
        .limit(1)
        .execute()
    )
    if not profile:
        return None

    role = profile.get("role") or "resident"
    if role not in ROLE_PERMISSIONS:
        role = "resident"

    return CurrentUser(
        id=user_id,
        email=email or "",
        role=role,
        full_name=profile.get("full_name"),
        phone_number=profile.get("phone_number"),
        verified=bool(profile.get("verified")),
        onboarding_completed=bool(profile.get("onboarding_completed")),
    )


# ============================================================
# AUTH DECODING (mobile JWT first, then Supabase session token)
# ============================================================
def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> CurrentUser:

    token = credentials.credentials

    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired authentication token",
        headers={"WWW-Authenticate": "Bearer"},
    )

    client: Client = get_supabase_client()
    if not client:
        raise HTTPException(500, "Supabase client not configured")

    claims = decode_mobile_token(token)
    if claims:
        user_id = claims["sub"]
        email = claims.get("email")
    else:
        # ---------------------------------------------------------
        # Validate web session via Supabase GoTrue
        # ---------------------------------------------------------
        try:
            auth_resp = client.auth.get_user(token)
            if not auth_resp or not auth_resp.user:
                raise unauthorized
            user_id = auth_resp.user.id
            email = auth_resp.user.email
        except HTTPException:
            raise
        except Exception:
            raise unauthorized

    user = load_current_user(client, user_id, email)
    if not user:
        logger.warning(f"Authenticated user {user_id} has no profile")
        raise unauthorized

    return user


# ============================================================
# ROLE CHECKER (basic role list guard)
# ============================================================
def requires_role(allowed_roles: list[str]):
    def checker(current_user: CurrentUser = Depends(get_current_user)):
        if current_user.role not in allowed_roles:
            raise HTTPException(
                status_code=403,
                detail=f"Requires one of: {allowed_roles}",
            )
        return current_user
    return checker


# ============================================================
# ADMIN BACK-OFFICE SESSION
# ============================================================
def get_current_admin(request: Request) -> CurrentAdmin:
    token = request.headers.get(ADMIN_SESSION_HEADER) or request.cookies.get(ADMIN_SESSION_COOKIE)
    if not token:
        raise HTTPException(401, "Admin session required")

    client: Client = get_supabase_client()
    if not client:
        raise HTTPException(500, "Supabase client not configured")

    session = first_row(
        client.table("admin_sessions")
        .select("admin_id, token, expires_at")
        .eq("token", token)
        .limit(1)
        .execute()
    )
    if not session:
        raise HTTPException(401, "Invalid admin session")

    expires_at = parse_datetime(session.get("expires_at"))
    if expires_at and expires_at < datetime.now(timezone.utc):
        raise HTTPException(401, "Admin session expired")

    admin = first_row(
        client.table("admins")
        .select("id, email, full_name, is_active")
        .eq("id", session["admin_id"])
        .limit(1)
        .execute()
    )
    if not admin or not admin.get("is_active"):
        raise HTTPException(403, "Admin account disabled")

    return CurrentAdmin(
        id=str(admin["id"]),
        email=admin["email"],
        full_name=admin.get("full_name"),
        session_token=token,
    )
