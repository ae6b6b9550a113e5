"""Calendar-day keys.

Dates are day-granularity values, never instants: a key like "2024-06-01"
names the same day for every user.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta

from src.core.errors import ValidationError


def parse_date(key: str) -> date:
    """Parse "YYYY-MM-DD" (or an ISO datetime, truncated to its day).

    Raises:
        ValidationError: on empty or malformed input.
    """
    if isinstance(key, datetime):
        return key.date()
    if isinstance(key, date):
        return key
    value = (key or "").strip() if isinstance(key, str) else ""
    if not value:
        raise ValidationError("Date is required.")
    try:
        if len(value) == 10:
            return date.fromisoformat(value)
        return datetime.fromisoformat(value).date()
    except ValueError as exc:
        raise ValidationError(f"Invalid date: {value!r}") from exc


def format_date_key(day: date) -> str:
    return day.isoformat()


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """Return [first day of month, first day of next month)."""
    if not 1 <= month <= 12:
        raise ValidationError(f"Invalid month: {month}")
    first = date(year, month, 1)
    days = calendar.monthrange(year, month)[1]
    return first, first + timedelta(days=days)
