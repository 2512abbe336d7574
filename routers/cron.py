# routers/cron.py

from typing import Optional

from fastapi import APIRouter, Header, HTTPException

from core.config import settings
from core.logging_config import logger
from core.supabase_client import get_supabase_client
from services.contributions import auto_generate_due_plans
from services.reminders import send_due_reminders

router = APIRouter(
    prefix="/cron",
    tags=["Cron"],
)


def verify_cron_secret(authorization: Optional[str]):
    if not settings.CRON_SECRET:
        raise HTTPException(500, "CRON_SECRET not configured")
    if authorization != f"Bearer {settings.CRON_SECRET}":
        raise HTTPException(401, "Unauthorized")


@router.post("/send-reminders")
def send_reminders(authorization: Optional[str] = Header(None)):
    """Daily fee reminders. Called by an external scheduler."""
    verify_cron_secret(authorization)
    stats = send_due_reminders(get_supabase_client())
    logger.info(f"[CRON] Reminders: {stats}")
    return {"success": True, "data": stats}


@router.post("/generate-contributions")
def generate_contributions(authorization: Optional[str] = Header(None)):
    verify_cron_secret(authorization)
    result = auto_generate_due_plans(get_supabase_client())
    logger.info(f"[CRON] Contributions: {result}")
    return {"success": True, "data": result}
