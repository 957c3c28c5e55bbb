"""Time window helpers shared by the analytic services."""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta, timezone

from labeler.core.exceptions import ValidationError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def subtract_months(moment: datetime, months: int) -> datetime:
    """Same day-of-month ``months`` earlier, clamped to the month's last day."""
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def require_non_negative(**values: int | float | None) -> None:
    for name, value in values.items():
        if value is not None and value < 0:
            raise ValidationError(f"{name} must not be negative")


def day_windows(now: datetime, current_days: int, historical_days: int) -> tuple[datetime, datetime, datetime]:
    """Boundaries (historical_start, current_start, now) of two adjacent windows.

    Windows are ``(historical_start, current_start]`` and ``(current_start, now]``.
    """
    current_start = now - timedelta(days=current_days)
    return current_start - timedelta(days=historical_days), current_start, now


def resolve_date_range(
    start_date: date | None,
    end_date: date | None,
    year: int | None,
    today: date,
) -> tuple[date, date]:
    """Inclusive calendar range: explicit dates, else the given year, else this year."""
    if (start_date is None) != (end_date is None):
        raise ValidationError("start_date and end_date must be given together")
    if start_date is not None and end_date is not None:
        if start_date > end_date:
            raise ValidationError("start_date must not be after end_date")
        return start_date, end_date

    year = year or today.year
    return date(year, 1, 1), date(year, 12, 31)


def day_bounds(start_date: date, end_date: date) -> tuple[datetime, datetime]:
    """UTC datetimes ``[start_date 00:00, end_date + 1 day 00:00)``."""
    start = datetime.combine(start_date, time.min, tzinfo=timezone.utc)
    end = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc)
    return start, end
