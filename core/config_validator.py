# core/config_validator.py

from typing import List, Tuple

from core.config import settings
from core.logging_config import logger

REQUIRED_SETTINGS = ("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY")

# (settings that must all be set, what stops working without them)
OPTIONAL_INTEGRATIONS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("SMTP_HOST", "SMTP_PORT", "SMTP_USER", "SMTP_PASS"), "emails, receipts and reminders are skipped"),
    (("STRIPE_SECRET_KEY",), "billing endpoints disabled"),
    (("STRIPE_WEBHOOK_SECRET",), "Stripe webhooks rejected"),
    (("CRON_SECRET",), "cron endpoints reject every call"),
    (("MOBILE_JWT_SECRET",), "mobile OTP login disabled"),
)


def validate_required_config() -> List[str]:
    return [name for name in REQUIRED_SETTINGS if not getattr(settings, name, None)]


def validate_optional_config() -> List[str]:
    warnings = []
    for names, consequence in OPTIONAL_INTEGRATIONS:
        missing = [n for n in names if not getattr(settings, n, None)]
        if missing:
            warnings.append(f"{', '.join(missing)} ({consequence})")
    return warnings


def validate_config_on_startup():
    """
    Raises RuntimeError when Supabase credentials are missing; an
    unconfigured optional integration only logs a warning.
    """
    missing = validate_required_config()
    if missing:
        message = f"Missing required environment variables: {', '.join(missing)}"
        logger.error(message)
        raise RuntimeError(message)

    for warning in validate_optional_config():
        logger.warning(f"Optional configuration missing: {warning}")

    logger.info(f"{settings.PROJECT_NAME} configuration OK (env={settings.ENV})")
