# routers/incidents.py

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from core.logging_config import logger
from core.permission_helpers import get_user_residence_id, is_syndic, requires_permission
from core.supabase_client import get_supabase_client
from core.supabase_helpers import first_row, safe_select, safe_insert, safe_update
from core.utils import sanitize, utc_now_iso
from dependencies.auth import get_current_user, requires_role, CurrentUser
from models.incident import IncidentCreate, IncidentUpdate

router = APIRouter(
    prefix="/incidents",
    tags=["Incidents"],
)

SYNDIC_ONLY_FIELDS = {"status", "assigned_to"}

can_report = requires_role(["resident", "guard"])
can_manage = requires_permission("incidents:manage")


def _residence_or_404(client, user: CurrentUser) -> int:
    residence_id = get_user_residence_id(client, user)
    if not residence_id:
        raise HTTPException(404, "No residence assigned")
    return residence_id


def _load_incident(client, incident_id: int, residence_id: int) -> dict:
    incident = safe_select(client, "incidents", {"id": incident_id, "residence_id": residence_id}, single=True)
    if not incident:
        raise HTTPException(404, "Incident not found")
    return incident


@router.get("")
def list_incidents(
    status: Optional[str] = Query(None),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Syndics and guards see the whole residence; residents see their own."""
    client = get_supabase_client()
    residence_id = _residence_or_404(client, current_user)

    query = (
        client.table("incidents")
        .select("*, reporter:user_id(id, full_name), assignee:assigned_to(id, full_name)")
        .eq("residence_id", residence_id)
    )
    if current_user.role == "resident":
        query = query.eq("user_id", current_user.id)
    if status:
        query = query.eq("status", status)

    rows = query.order("created_at", desc=True).execute().data or []
    return {"success": True, "data": rows}


@router.get("/assignable-users")
def assignable_users(current_user: CurrentUser = Depends(get_current_user)):
    if not is_syndic(current_user):
        raise HTTPException(403, "Only syndics can assign incidents")
    client = get_supabase_client()
    residence_id = _residence_or_404(client, current_user)

    residence = first_row(
        client.table("residences").select("syndic_user_id, guard_user_id").eq("id", residence_id).limit(1).execute()
    ) or {}
    ids = [i for i in (residence.get("syndic_user_id"), residence.get("guard_user_id")) if i]
    if not ids:
        return {"success": True, "data": []}

    users = (
        client.table("profiles").select("id, full_name, role").in_("id", ids).execute()
    ).data or []
    return {"success": True, "data": users}


@router.post("")
def create_incident(payload: IncidentCreate, current_user: CurrentUser = Depends(can_report)):
    data = sanitize(payload.model_dump())
    if not data.get("title") or not data.get("description"):
        raise HTTPException(400, "title and description are required")

    client = get_supabase_client()
    residence_id = _residence_or_404(client, current_user)

    incident = safe_insert(client, "incidents", {
        **data,
        "residence_id": residence_id,
        "user_id": current_user.id,
        "status": "open",
    })
    logger.info(f"Incident {incident and incident.get('id')} reported in residence {residence_id}")
    return {"success": True, "data": incident}


@router.patch("/{incident_id}")
def update_incident(incident_id: int, payload: IncidentUpdate,
                    current_user: CurrentUser = Depends(get_current_user)):
    client = get_supabase_client()
    residence_id = _residence_or_404(client, current_user)
    incident = _load_incident(client, incident_id, residence_id)

    update = payload.model_dump(exclude_unset=True)
    if not update:
        raise HTTPException(400, "No fields to update")

    syndic = is_syndic(current_user)
    if not syndic:
        if incident["user_id"] != current_user.id:
            raise HTTPException(403, "You can only edit your own incidents")
        if SYNDIC_ONLY_FIELDS & update.keys():
            raise HTTPException(403, "Only the syndic can change status or assignee")

    if update.get("status"):
        update["status"] = str(update["status"])
        if update["status"] in ("resolved", "closed"):
            update["resolved_at"] = utc_now_iso()

    update["updated_at"] = utc_now_iso()
    updated = safe_update(client, "incidents", {"id": incident_id}, update)
    return {"success": True, "data": updated or {**incident, **update}}


@router.delete("/{incident_id}")
def delete_incident(incident_id: int, current_user: CurrentUser = Depends(can_manage)):
    client = get_supabase_client()
    residence_id = _residence_or_404(client, current_user)
    _load_incident(client, incident_id, residence_id)

    client.table("incidents").delete().eq("id", incident_id).execute()
    return {"success": True, "data": {"id": incident_id, "deleted": True}}
