# core/scheduler.py
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from core.logging_config import logger
from core.supabase_client import get_supabase_client
from services.contributions import auto_generate_due_plans
from services.reminders import send_due_reminders

_scheduler = None


def run_fee_reminders():
    client = get_supabase_client()
    if not client:
        logger.error("[SCHEDULER] Supabase not configured, reminders skipped")
        return
    try:
        send_due_reminders(client)
    except Exception as e:
        logger.error(f"[SCHEDULER] Fee reminders failed: {e}", exc_info=True)


def run_contribution_generation():
    client = get_supabase_client()
    if not client:
        logger.error("[SCHEDULER] Supabase not configured, contribution generation skipped")
        return
    try:
        result = auto_generate_due_plans(client)
        logger.info(f"[SCHEDULER] Contribution auto-generation: {result}")
    except Exception as e:
        logger.error(f"[SCHEDULER] Contribution generation failed: {e}", exc_info=True)


def start_scheduler() -> BackgroundScheduler:
    """
    Start the APScheduler background process (once per process).
    """
    global _scheduler
    if _scheduler is not None:
        return _scheduler

    scheduler = BackgroundScheduler(timezone="UTC")

    scheduler.add_job(
        run_contribution_generation,
        trigger=CronTrigger(hour=6, minute=0),
        id="contribution_generation_job",
        replace_existing=True,
    )
    scheduler.add_job(
        run_fee_reminders,
        trigger=CronTrigger(hour=7, minute=0),
        id="fee_reminders_job",
        replace_existing=True,
    )

    scheduler.start()
    _scheduler = scheduler
    logger.info("⏰ Scheduler started. Contributions 06:00 UTC, reminders 07:00 UTC.")
    return scheduler


def shutdown_scheduler():
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None


def scheduler_running() -> bool:
    return _scheduler is not None and _scheduler.running
