"""Date manipulation utilities"""

from datetime import date, datetime, time, timedelta, timezone


def start_of_day(day: date) -> datetime:
    """Midnight at the beginning of `day`"""
    return datetime.combine(day, time.min)


def month_start(as_of: datetime) -> datetime:
    """First instant of the calendar month containing `as_of`"""
    return start_of_day(as_of.date().replace(day=1))


def next_month_start(as_of: datetime) -> datetime:
    """First instant of the calendar month after the one containing `as_of`"""
    first = as_of.date().replace(day=1)
    if first.month == 12:
        return start_of_day(first.replace(year=first.year + 1, month=1))
    return start_of_day(first.replace(month=first.month + 1))


def trailing_days_window(as_of: datetime, days: int) -> tuple[datetime, datetime]:
    """
    Half-open window covering the `days` calendar days before `as_of` and the day of `as_of`.

    Example: as_of 2024-03-10 14:00, days=60 -> [2024-01-10 00:00, 2024-03-11 00:00)
    """
    end = start_of_day(as_of.date() + timedelta(days=1))
    start = start_of_day(as_of.date() - timedelta(days=days))
    return start, end


def to_naive_utc(value: datetime) -> datetime:
    """Aware datetimes converted to UTC with tzinfo dropped; naive values are returned unchanged"""
    if value.tzinfo is None or value.utcoffset() is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
