# routers/health.py

from fastapi import APIRouter

from core.config import settings
from core.logging_config import logger
from core.scheduler import scheduler_running
from core.supabase_client import ping_supabase

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("/db", summary="Database reachability")
def health_db():
    """Per-table probe of the core tables. Always answers with JSON."""
    try:
        result = ping_supabase()
    except Exception as e:
        logger.error(f"/health/db crashed: {e}", exc_info=True)
        return {"service": "Supabase", "status": "error", "error": str(e)}
    return {"service": "Supabase", "status": result.get("status", "unknown"), "details": result}


@router.get("/app", summary="Process liveness")
def health_app():
    return {
        "service": settings.PROJECT_NAME,
        "status": "ok",
        "env": settings.ENV,
        "scheduler": "running" if scheduler_running() else "off",
    }
