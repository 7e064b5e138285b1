from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional


PERIODS = ("daily", "weekly", "monthly", "yearly")


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.utcnow()


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_date_bound(value: Optional[str], *, upper: bool = False) -> Optional[datetime]:
    """
    Parse a filter bound. A date-only upper bound ("2024-01-31") covers the
    whole day, so it becomes 23:59:59.999999 of that day.
    """
    dt = parse_iso_datetime(value)
    if dt is None:
        return None
    if upper and len(value.strip()) == 10:
        return dt + timedelta(days=1) - timedelta(microseconds=1)
    return dt


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def add_months(d: date, months: int) -> date:
    """Shift a first-of-month date by whole months."""
    index = d.year * 12 + (d.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def period_start(value: datetime | date, period: str) -> date:
    """
    First calendar day of the bucket containing `value`.

    daily: the day itself; weekly: the Monday of its ISO week;
    monthly: the 1st of the month; yearly: January 1st.
    """
    d = value.date() if isinstance(value, datetime) else value
    if period == "daily":
        return d
    if period == "weekly":
        return d - timedelta(days=d.weekday())
    if period == "monthly":
        return d.replace(day=1)
    if period == "yearly":
        return date(d.year, 1, 1)
    raise ValueError(f"Unknown period: {period}")


def shift_period(start: date, period: str, steps: int = 1) -> date:
    """Move a bucket start forward (or backward, for negative steps)."""
    if period == "daily":
        return start + timedelta(days=steps)
    if period == "weekly":
        return start + timedelta(weeks=steps)
    if period == "monthly":
        return add_months(start, steps)
    if period == "yearly":
        return date(start.year + steps, 1, 1)
    raise ValueError(f"Unknown period: {period}")


def period_label(start: date, period: str) -> str:
    if period in ("daily", "weekly"):
        return start.isoformat()
    if period == "monthly":
        return start.strftime("%Y-%m")
    if period == "yearly":
        return str(start.year)
    raise ValueError(f"Unknown period: {period}")
