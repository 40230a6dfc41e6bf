from __future__ import annotations

from datetime import datetime, timedelta

from smartspend.models import RecurringInterval


def _add_months_rolling(value: datetime, months: int) -> datetime:
    """Add calendar months, letting an out-of-range day spill into the next month.

    Jan 31 + 1 month lands on Mar 2 (leap year) or Mar 3, instead of being
    clamped to the last day of February.
    """
    total = value.month - 1 + months
    year = value.year + total // 12
    month = total % 12 + 1
    first = value.replace(year=year, month=month, day=1)
    return first + timedelta(days=value.day - 1)


def advance(value: datetime, interval: RecurringInterval | str) -> datetime:
    """Return the next occurrence after ``value`` for the given interval."""
    interval = RecurringInterval(interval)
    if interval is RecurringInterval.DAILY:
        return value + timedelta(days=1)
    if interval is RecurringInterval.WEEKLY:
        return value + timedelta(days=7)
    if interval is RecurringInterval.MONTHLY:
        return _add_months_rolling(value, 1)
    return _add_months_rolling(value, 12)


def month_start(value: datetime) -> datetime:
    return value.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def next_month_start(value: datetime) -> datetime:
    start = month_start(value)
    if start.month == 12:
        return start.replace(year=start.year + 1, month=1)
    return start.replace(month=start.month + 1)


def previous_month_start(value: datetime) -> datetime:
    start = month_start(value)
    if start.month == 1:
        return start.replace(year=start.year - 1, month=12)
    return start.replace(month=start.month - 1)


def is_earlier_month(earlier: datetime, later: datetime) -> bool:
    """True when ``earlier`` falls in a strictly earlier calendar month than ``later``."""
    return (earlier.year, earlier.month) < (later.year, later.month)
