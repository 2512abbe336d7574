# routers/documents.py

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from core.config import settings
from core.logging_config import logger
from core.permission_helpers import require_syndic
from core.supabase_client import get_supabase_client
from core.supabase_helpers import best_effort, first_row
from core.utils import utc_now_iso
from dependencies.auth import get_current_user, CurrentUser
from services.account_deletion import SYNDIC_DOCUMENTS_PREFIX, storage_path_from_url

router = APIRouter(
    prefix="/documents",
    tags=["Syndic Documents"],
)

ALLOWED_CONTENT_TYPES = {"application/pdf", "image/jpeg", "image/png", "image/jpg"}
MAX_FILE_SIZE = 10 * 1024 * 1024


def _latest_submission(client, user_id: str, statuses=None) -> Optional[dict]:
    query = client.table("syndic_document_submissions").select("*").eq("user_id", user_id)
    if statuses:
        query = query.in_("status", statuses)
    return first_row(query.order("submitted_at", desc=True).limit(1).execute())


async def _store(client, user_id: str, upload: UploadFile, kind: str, label: str) -> str:
    if upload.content_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(400, f"Invalid file type for {label}. Please upload a PDF or image file.")

    content = await upload.read()
    if len(content) > MAX_FILE_SIZE:
        raise HTTPException(400, f"{label} file size too large. Maximum size is 10MB.")

    ext = (upload.filename or "").rsplit(".", 1)[-1].lower() if "." in (upload.filename or "") else "bin"
    path = f"{SYNDIC_DOCUMENTS_PREFIX}/{user_id}/{kind}-{uuid.uuid4().hex[:12]}.{ext}"

    bucket = client.storage.from_(settings.STORAGE_BUCKET)
    try:
        bucket.upload(path, content, {"content-type": upload.content_type, "upsert": "false"})
    except Exception as e:
        logger.error(f"Storage upload failed for {path}: {e}")
        raise HTTPException(500, f"Failed to upload {label}. Please try again.")

    return bucket.get_public_url(path)


def _remove_file(client, url: Optional[str]):
    path = storage_path_from_url(url, settings.STORAGE_BUCKET)
    if path:
        best_effort(
            f"remove replaced document {path}",
            lambda: client.storage.from_(settings.STORAGE_BUCKET).remove([path]),
        )


@router.post("/upload")
async def upload_documents(
    file: Optional[UploadFile] = File(None),
    id_card: Optional[UploadFile] = File(None),
    current_user: CurrentUser = Depends(get_current_user),
):
    """
    Upload the procès-verbal and/or ID card for admin review.

    A first submission needs both files. A pending or rejected submission
    may be resubmitted with either file; the replaced file is removed
    from storage and the submission goes back to pending.
    """
    require_syndic(current_user, "Only syndics can upload documents")
    if not file and not id_card:
        raise HTTPException(400, "No file provided")

    client = get_supabase_client()
    existing = _latest_submission(client, current_user.id, ["pending", "rejected"])
    if not existing and (not file or not id_card):
        raise HTTPException(400, "Procès verbal and ID card documents are both required")

    document_url = await _store(client, current_user.id, file, "proces-verbal", "Procès verbal") if file else None
    id_card_url = await _store(client, current_user.id, id_card, "id-card", "ID card") if id_card else None

    if existing:
        update = {
            "status": "pending",
            "submitted_at": utc_now_iso(),
            "rejection_reason": None,
            "reviewed_at": None,
            "reviewed_by": None,
        }
        if document_url:
            _remove_file(client, existing.get("document_url"))
            update["document_url"] = document_url
        if id_card_url:
            _remove_file(client, existing.get("id_card_url"))
            update["id_card_url"] = id_card_url

        result = client.table("syndic_document_submissions").update(update).eq("id", existing["id"]).execute()
    else:
        result = client.table("syndic_document_submissions").insert({
            "user_id": current_user.id,
            "document_url": document_url,
            "id_card_url": id_card_url,
            "status": "pending",
            "submitted_at": utc_now_iso(),
        }, returning="representation").execute()

    submission = first_row(result)
    logger.info(f"Syndic {current_user.id} submitted verification documents")
    return {
        "success": True,
        "data": submission,
        "message": "Document uploaded successfully. Waiting for admin review.",
    }


@router.get("/status")
def document_status(current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    submission = _latest_submission(client, current_user.id)
    return {"success": True, "data": submission}


@router.delete("/submission")
def cancel_submission(current_user: CurrentUser = Depends(get_current_user)):
    require_syndic(current_user)
    client = get_supabase_client()

    pending = _latest_submission(client, current_user.id, ["pending"])
    if not pending:
        raise HTTPException(404, "No pending submission")

    _remove_file(client, pending.get("document_url"))
    _remove_file(client, pending.get("id_card_url"))
    client.table("syndic_document_submissions").delete().eq("id", pending["id"]).execute()
    return {"success": True, "data": {"id": pending["id"], "cancelled": True}}
