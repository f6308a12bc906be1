"""Time Utilities for UTC management and civil-day boundaries"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple

from app.config import settings


def get_utc_now() -> datetime:
    """
    Returns a naive UTC datetime.
    Matches the DB schema (TIMESTAMP WITHOUT TIME ZONE).
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_local_now() -> datetime:
    """Aware datetime in the configured civil zone"""
    return datetime.now(settings.tz)


def local_today() -> date:
    return get_local_now().date()


def to_local(value: Optional[datetime]) -> Optional[datetime]:
    """Interpret a stored naive-UTC timestamp in the configured zone"""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(settings.tz)


def to_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a client-supplied timestamp for storage.
    Aware values are converted to UTC; naive values are read as the configured zone.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=settings.tz)
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def local_midnight_utc(day: date) -> datetime:
    """Naive UTC instant at which the civil day ``day`` starts"""
    start = datetime.combine(day, time.min).replace(tzinfo=settings.tz)
    return start.astimezone(timezone.utc).replace(tzinfo=None)


def day_bounds_utc(day: date) -> Tuple[datetime, datetime]:
    """Half-open [start, end) of a civil day, as naive UTC"""
    return local_midnight_utc(day), local_midnight_utc(day + timedelta(days=1))


def month_start(day: date) -> date:
    return day.replace(day=1)


def add_months(day: date, months: int) -> date:
    """First-of-month arithmetic; ``day`` is expected to be a month start"""
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def month_bounds_utc(day: date) -> Tuple[datetime, datetime]:
    """Half-open [start, end) of the civil month containing ``day``, as naive UTC"""
    first = month_start(day)
    return local_midnight_utc(first), local_midnight_utc(add_months(first, 1))
