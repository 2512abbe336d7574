# routers/admin.py

import secrets
from datetime import timedelta

import bcrypt
from fastapi import APIRouter, Depends, HTTPException, Request, Response

from core.config import settings
from core.logging_config import logger
from core.rate_limiter import require_rate_limit
from core.supabase_client import get_supabase_client
from core.supabase_helpers import first_row, best_effort, delete_auth_user
from core.utils import utc_now, utc_now_iso
from dependencies.auth import (
    get_current_admin,
    CurrentAdmin,
    ADMIN_SESSION_COOKIE,
)
from models.admin import AdminLogin, DocumentApprove, ReasonPayload, DeletionRequestApprove
from models.residence import AdminResidenceCreate
from services.account_deletion import delete_syndic_documents


router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
)


# -----------------------------------------------------
# Helpers
# -----------------------------------------------------
def check_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # malformed hash
        return False


def _load_pending(client, table: str, row_id: int, label: str) -> dict:
    row = first_row(client.table(table).select("*").eq("id", row_id).limit(1).execute())
    if not row:
        raise HTTPException(404, f"{label} not found")
    if row.get("status") != "pending":
        raise HTTPException(400, f"This {label.lower()} has already been processed")
    return row


# -----------------------------------------------------
# Session
# -----------------------------------------------------
@router.post("/auth/login")
def admin_login(payload: AdminLogin, request: Request, response: Response):
    require_rate_limit(request, "admin_login", max_requests=5, window_seconds=300)

    if not payload.email or not payload.password or not payload.access_hash:
        raise HTTPException(400, "email, password and accessHash are required")

    client = get_supabase_client()
    admin = first_row(
        client.table("admins")
        .select("id, email, full_name, password_hash, is_active")
        .eq("email", payload.email.strip().lower())
        .eq("access_hash", payload.access_hash)
        .eq("is_active", True)
        .limit(1)
        .execute()
    )
    if not admin:
        logger.warning(f"Admin login refused for {payload.email}: unknown access hash or inactive")
        raise HTTPException(403, "Access denied")

    if not check_password(payload.password, admin.get("password_hash")):
        raise HTTPException(401, "Invalid email or password")

    token = secrets.token_urlsafe(32)
    expires_at = utc_now() + timedelta(days=settings.ADMIN_SESSION_DAYS)
    client.table("admin_sessions").insert({
        "admin_id": admin["id"],
        "token": token,
        "expires_at": expires_at.isoformat(),
    }).execute()

    best_effort(
        "update admins.last_login_at",
        lambda: client.table("admins").update({"last_login_at": utc_now_iso()}).eq("id", admin["id"]).execute(),
    )

    response.set_cookie(
        ADMIN_SESSION_COOKIE,
        token,
        max_age=settings.ADMIN_SESSION_DAYS * 86400,
        httponly=True,
        secure=settings.ENV == "production",
        samesite="lax",
    )
    logger.info(f"Admin {admin['email']} logged in")

    return {
        "success": True,
        "data": {
            "admin": {"id": admin["id"], "email": admin["email"], "full_name": admin.get("full_name")},
            "session_token": token,
            "expires_at": expires_at.isoformat(),
        },
    }


@router.post("/auth/logout")
def admin_logout(response: Response, admin: CurrentAdmin = Depends(get_current_admin)):
    client = get_supabase_client()
    client.table("admin_sessions").delete().eq("token", admin.session_token).execute()
    response.delete_cookie(ADMIN_SESSION_COOKIE)
    return {"success": True}


# -----------------------------------------------------
# Residences
# -----------------------------------------------------
@router.get("/residences")
def list_residences(admin: CurrentAdmin = Depends(get_current_admin)):
    client = get_supabase_client()
    rows = (
        client.table("residences")
        .select("*, profiles:syndic_user_id(id, full_name)")
        .order("created_at", desc=True)
        .execute()
    ).data or []
    return {"success": True, "data": rows}


@router.post("/residences")
def create_residence(payload: AdminResidenceCreate, admin: CurrentAdmin = Depends(get_current_admin)):
    client = get_supabase_client()

    if payload.syndic_user_id:
        syndic = first_row(
            client.table("profiles").select("id")
            .eq("id", payload.syndic_user_id).eq("role", "syndic").limit(1).execute()
        )
        if not syndic:
            raise HTTPException(400, "Selected syndic does not exist")

        assigned = first_row(
            client.table("residences").select("id, name")
            .eq("syndic_user_id", payload.syndic_user_id).limit(1).execute()
        )
        if assigned:
            raise HTTPException(400, f"This syndic already manages \"{assigned['name']}\"")

    result = client.table("residences").insert({
        "name": payload.name,
        "address": payload.address,
        "city": payload.city,
        "bank_account_rib": payload.bank_account_rib,
        "syndic_user_id": payload.syndic_user_id,
    }, returning="representation").execute()
    residence = first_row(result)

    if payload.syndic_user_id:
        best_effort(
            "verify assigned syndic",
            lambda: client.table("profiles").update({"verified": True}).eq("id", payload.syndic_user_id).execute(),
        )

    logger.info(f"Admin {admin.email} created residence {residence and residence.get('id')}")
    return {"success": True, "data": residence}


# -----------------------------------------------------
# Syndics
# -----------------------------------------------------
@router.get("/syndics")
def list_syndics(admin: CurrentAdmin = Depends(get_current_admin)):
    client = get_supabase_client()
    syndics = (
        client.table("profiles")
        .select("id, full_name, phone_number, verified, created_at")
        .eq("role", "syndic")
        .order("created_at", desc=True)
        .execute()
    ).data or []

    residences = []
    if syndics:
        residences = (
            client.table("residences").select("id, name, syndic_user_id")
            .in_("syndic_user_id", [s["id"] for s in syndics]).execute()
        ).data or []
    by_syndic = {r["syndic_user_id"]: r for r in residences}

    for s in syndics:
        s["residence"] = by_syndic.get(s["id"])
    return {"success": True, "data": syndics}


@router.delete("/syndics/{syndic_id}")
def delete_syndic(syndic_id: str, admin: CurrentAdmin = Depends(get_current_admin)):
    client = get_supabase_client()

    profile = first_row(
        client.table("profiles").select("id, role").eq("id", syndic_id).limit(1).execute()
    )
    if not profile or profile.get("role") != "syndic":
        raise HTTPException(404, "Syndic not found")

    delete_syndic_documents(client, syndic_id)
    client.table("residences").update({"syndic_user_id": None}).eq("syndic_user_id", syndic_id).execute()
    client.table("profiles").delete().eq("id", syndic_id).execute()
    best_effort("delete users row", lambda: client.table("users").delete().eq("id", syndic_id).execute())
    delete_auth_user(client, syndic_id)

    logger.info(f"Admin {admin.email} deleted syndic {syndic_id}")
    return {"success": True, "data": {"id": syndic_id, "deleted": True}}


# -----------------------------------------------------
# Document review
# -----------------------------------------------------
@router.get("/documents")
def list_document_submissions(status: str = None, admin: CurrentAdmin = Depends(get_current_admin)):
    client = get_supabase_client()
    query = (
        client.table("syndic_document_submissions")
        .select("*, profiles:user_id(id, full_name, phone_number, verified)")
    )
    if status:
        query = query.eq("status", status)
    rows = query.order("submitted_at", desc=True).execute().data or []
    return {"success": True, "data": rows}


@router.post("/documents/{submission_id}/approve")
def approve_document(submission_id: int, payload: DocumentApprove,
                     admin: CurrentAdmin = Depends(get_current_admin)):
    """
    Approve a syndic's documents and hand them the residence.

    The residence must exist and either have no syndic or already belong
    to the submitting user.
    """
    if not payload.residence_id:
        raise HTTPException(400, "residenceId is required")

    client = get_supabase_client()
    submission = _load_pending(client, "syndic_document_submissions", submission_id, "Submission")

    residence = first_row(
        client.table("residences").select("id, name, syndic_user_id")
        .eq("id", payload.residence_id).limit(1).execute()
    )
    if not residence:
        raise HTTPException(404, "Residence not found")
    if residence.get("syndic_user_id") and residence["syndic_user_id"] != submission["user_id"]:
        raise HTTPException(400, "Residence already has a syndic")

    client.table("syndic_document_submissions").update({
        "status": "approved",
        "reviewed_at": utc_now_iso(),
        "reviewed_by": admin.id,
        "assigned_residence_id": residence["id"],
    }).eq("id", submission_id).execute()

    client.table("residences").update({"syndic_user_id": submission["user_id"]}).eq("id", residence["id"]).execute()
    client.table("profiles").update({"verified": True}).eq("id", submission["user_id"]).execute()

    logger.info(f"Admin {admin.email} approved submission {submission_id} for residence {residence['id']}")
    return {"success": True, "data": {"id": submission_id, "status": "approved", "residence_id": residence["id"]}}


@router.post("/documents/{submission_id}/reject")
def reject_document(submission_id: int, payload: ReasonPayload,
                    admin: CurrentAdmin = Depends(get_current_admin)):
    if not payload.reason or not payload.reason.strip():
        raise HTTPException(400, "Rejection reason is required")

    client = get_supabase_client()
    submission = _load_pending(client, "syndic_document_submissions", submission_id, "Submission")

    client.table("syndic_document_submissions").update({
        "status": "rejected",
        "rejection_reason": payload.reason.strip(),
        "reviewed_at": utc_now_iso(),
        "reviewed_by": admin.id,
    }).eq("id", submission_id).execute()
    client.table("profiles").update({"verified": False}).eq("id", submission["user_id"]).execute()

    return {"success": True, "data": {"id": submission_id, "status": "rejected"}}


# -----------------------------------------------------
# Syndic deletion requests
# -----------------------------------------------------
@router.get("/deletion-requests")
def list_deletion_requests(status: str = None, admin: CurrentAdmin = Depends(get_current_admin)):
    client = get_supabase_client()
    query = client.table("syndic_deletion_requests").select(
        "*, residences(id, name), syndic:syndic_user_id(id, full_name), successor:successor_user_id(id, full_name)"
    )
    if status:
        query = query.eq("status", status)
    rows = query.order("requested_at", desc=True).execute().data or []
    return {"success": True, "data": rows}


@router.post("/deletion-requests/{request_id}/approve")
def approve_deletion_request(request_id: int, payload: DeletionRequestApprove,
                             admin: CurrentAdmin = Depends(get_current_admin)):
    client = get_supabase_client()
    req = _load_pending(client, "syndic_deletion_requests", request_id, "Deletion request")

    successor_id = (payload.successor_user_id or "").strip() or req.get("successor_user_id")
    if not successor_id:
        raise HTTPException(400, {
            "message": "Select a resident to become the new syndic before approving",
            "code": "SUCCESSOR_REQUIRED",
        })

    syndic_id = req["syndic_user_id"]
    residence_id = req["residence_id"]

    links = (
        client.table("profile_residences").select("profile_id")
        .eq("residence_id", residence_id).neq("profile_id", syndic_id).execute()
    ).data or []
    if successor_id not in {link["profile_id"] for link in links}:
        raise HTTPException(400, "Invalid successor selected")

    successor = first_row(client.table("profiles").select("role").eq("id", successor_id).limit(1).execute())
    if successor and successor.get("role") == "syndic":
        raise HTTPException(400, "A syndic cannot be selected as successor")

    # old syndic stays on as a resident
    client.table("profiles").update({"role": "resident"}).eq("id", syndic_id).execute()
    existing_link = first_row(
        client.table("profile_residences").select("id")
        .eq("profile_id", syndic_id).eq("residence_id", residence_id).limit(1).execute()
    )
    if not existing_link:
        best_effort(
            "link former syndic as resident",
            lambda: client.table("profile_residences").insert(
                {"profile_id": syndic_id, "residence_id": residence_id}
            ).execute(),
        )

    client.table("profiles").update({"role": "syndic", "verified": True}).eq("id", successor_id).execute()
    client.table("residences").update({"syndic_user_id": successor_id}).eq("id", residence_id).execute()
    client.table("profile_residences").delete() \
        .eq("profile_id", successor_id).eq("residence_id", residence_id).execute()

    client.table("syndic_deletion_requests").update({
        "successor_user_id": successor_id,
        "reviewed_by": admin.id,
        "reviewed_at": utc_now_iso(),
        "status": "approved",
    }).eq("id", request_id).execute()
    client.table("syndic_deletion_requests").update({
        "status": "completed",
        "completed_at": utc_now_iso(),
    }).eq("id", request_id).execute()

    logger.info(f"Deletion request {request_id}: residence {residence_id} moved {syndic_id} -> {successor_id}")
    return {"success": True, "data": {"id": request_id, "status": "completed", "successor_user_id": successor_id}}


@router.post("/deletion-requests/{request_id}/reject")
def reject_deletion_request(request_id: int, payload: ReasonPayload,
                            admin: CurrentAdmin = Depends(get_current_admin)):
    client = get_supabase_client()
    _load_pending(client, "syndic_deletion_requests", request_id, "Deletion request")

    client.table("syndic_deletion_requests").update({
        "status": "rejected",
        "rejection_reason": payload.reason,
        "reviewed_by": admin.id,
        "reviewed_at": utc_now_iso(),
    }).eq("id", request_id).execute()
    return {"success": True, "data": {"id": request_id, "status": "rejected"}}
