# core/supabase_client.py

from typing import Optional

from supabase import create_client, Client, ClientOptions

from core.config import settings
from core.logging_config import logger

# Probed by /health/db
HEALTH_TABLES = ("residences", "profiles", "fees", "payments")


def get_supabase_client() -> Optional[Client]:
    """
    Service-role client on the application schema, or None when the
    credentials are not configured.

    The service role is needed for auth.admin user management, storage
    cleanup and the admin back-office's cross-residence reads. Tenant
    scoping is done in the handlers.
    """
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
        logger.error(
            "Supabase not configured (SUPABASE_URL %s, SUPABASE_SERVICE_ROLE_KEY %s)",
            "set" if settings.SUPABASE_URL else "missing",
            "set" if settings.SUPABASE_SERVICE_ROLE_KEY else "missing",
        )
        return None

    try:
        return create_client(
            settings.SUPABASE_URL,
            settings.SUPABASE_SERVICE_ROLE_KEY,
            options=ClientOptions(schema=settings.SUPABASE_SCHEMA),
        )
    except Exception as e:
        logger.error(f"Supabase client init failed: {e}", exc_info=True)
        return None


def ping_supabase() -> dict:
    """
    One `select id limit 1` per health table. A failing table is
    reported, not raised. Auth tables are never touched.
    """
    client = get_supabase_client()
    if client is None:
        return {"service": "Supabase", "status": "not_configured"}

    tables = {}
    for name in HEALTH_TABLES:
        try:
            rows = client.table(name).select("id").limit(1).execute().data or []
            tables[name] = {"status": "ok", "rows_found": len(rows)}
        except Exception as e:
            logger.warning(f"Health check on {name} failed: {e}")
            tables[name] = {"status": "error", "detail": str(e)}

    degraded = any(t["status"] != "ok" for t in tables.values())
    return {"service": "Supabase", "status": "degraded" if degraded else "ok", "tables": tables}
