# core/utils.py

import calendar
from datetime import date, datetime, timezone
from typing import Optional, Union


def sanitize(data: dict) -> dict:
    """
    Normalize a payload before it is written:
    - Empty / whitespace strings → None
    - Strings are stripped
    - date / datetime values → ISO strings (PostgREST wants JSON)
    """
    clean = {}

    for k, v in data.items():
        if isinstance(v, str):
            stripped = v.strip()
            clean[k] = stripped if stripped else None
            continue

        if isinstance(v, (date, datetime)):
            clean[k] = v.isoformat()
            continue

        clean[k] = v

    return clean


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    return utc_now().isoformat()


def parse_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """Accepts 'YYYY-MM-DD', full ISO timestamps, date or datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def parse_datetime(value: Union[str, datetime, None]) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        # Supabase returns trailing Z timestamps
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def add_months(d: date, months: int) -> date:
    """Add calendar months, clamping the day to the target month length."""
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def month_bounds(year: int, month: int) -> tuple:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def to_amount(value) -> float:
    """Numeric columns come back as str, int or float depending on the driver."""
    if value is None or value == "":
        return 0.0
    return round(float(value), 2)
