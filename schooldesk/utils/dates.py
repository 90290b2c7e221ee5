from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Drop tzinfo after converting to UTC.

    SQLite hands back naive datetimes and PostgreSQL aware ones; comparisons in
    handlers are done against ``datetime.utcnow()``.
    """
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def days_ago(days: int) -> datetime:
    return datetime.utcnow() - timedelta(days=days)


def weekday_name(day: date) -> str:
    return day.strftime("%A")
