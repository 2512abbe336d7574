# services/reminders.py

from datetime import date, datetime, timezone
from typing import Dict, Any, Optional

from supabase import Client

from core.email_utils import send_fee_reminder
from core.logging_config import logger
from core.supabase_helpers import first_row
from core.utils import parse_date, to_amount, utc_now_iso


def reminder_type_for(days_until_due: int) -> str:
    if days_until_due > 0:
        return "before_due"
    if days_until_due == 0:
        return "on_due"
    return "overdue"


def should_remind(days_until_due: int, reminder_days_before: int) -> bool:
    """
    Remind `reminder_days_before` days ahead, on the due date, and every
    third day once overdue.
    """
    if days_until_due == reminder_days_before or days_until_due == 0:
        return True
    return days_until_due < 0 and days_until_due % 3 == 0


def _already_sent_today(client: Client, fee_id, user_id: str, today: date) -> bool:
    result = (
        client.table("email_reminders")
        .select("id")
        .eq("fee_id", fee_id)
        .eq("user_id", user_id)
        .gte("sent_at", today.isoformat())
        .limit(1)
        .execute()
    )
    return bool(result.data)


def send_due_reminders(client: Client, today: Optional[date] = None) -> Dict[str, Any]:
    today = today or datetime.now(timezone.utc).date()
    stats = {"rules": 0, "checked": 0, "sent": 0, "skipped": 0, "failed": 0}

    rules = (
        client.table("recurring_fee_settings")
        .select("id, residence_id, title, reminder_days_before, residences(name)")
        .eq("is_active", True)
        .eq("reminder_enabled", True)
        .execute()
    ).data or []

    for rule in rules:
        stats["rules"] += 1
        residence_name = (rule.get("residences") or {}).get("name") or "SAKAN"
        days_before = int(rule.get("reminder_days_before") or 0)

        fees = (
            client.table("fees")
            .select("id, user_id, title, amount, due_date")
            .eq("recurring_setting_id", rule["id"])
            .eq("status", "unpaid")
            .execute()
        ).data or []

        for fee in fees:
            stats["checked"] += 1
            due = parse_date(fee.get("due_date"))
            if due is None:
                continue
            days_until_due = (due - today).days
            if not should_remind(days_until_due, days_before):
                continue
            if _already_sent_today(client, fee["id"], fee["user_id"], today):
                stats["skipped"] += 1
                continue

            user = first_row(
                client.table("users").select("email, name").eq("id", fee["user_id"]).limit(1).execute()
            )
            if not user or not user.get("email"):
                stats["skipped"] += 1
                continue

            sent = send_fee_reminder(
                to=user["email"],
                resident_name=user.get("name"),
                residence_name=residence_name,
                fee_title=fee["title"],
                amount=to_amount(fee["amount"]),
                due_date=due.strftime("%d/%m/%Y"),
                days_until_due=days_until_due,
            )
            if not sent:
                stats["failed"] += 1
                continue

            client.table("email_reminders").insert({
                "fee_id": fee["id"],
                "user_id": fee["user_id"],
                "reminder_type": reminder_type_for(days_until_due),
                "days_before": days_until_due,
                "sent_at": utc_now_iso(),
            }).execute()
            stats["sent"] += 1

        client.table("recurring_fee_settings").update(
            {"last_reminder_sent_at": utc_now_iso()}
        ).eq("id", rule["id"]).execute()

    logger.info(f"Fee reminders: {stats}")
    return stats
