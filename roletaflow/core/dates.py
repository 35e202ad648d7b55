"""
Operation-day helpers.

Operation days are typed by operators as ``DD/MM/YYYY`` and interpreted in
the configured local timezone. Stored instants are UTC.
"""

from __future__ import annotations

import datetime
from zoneinfo import ZoneInfo

from .errors import OperationDayRequired, ValidationError

OPERATION_DAY_FORMAT = "%d/%m/%Y"


def parse_operation_day(value: str | None) -> datetime.date:
    if value is None or not str(value).strip():
        raise OperationDayRequired()
    try:
        return datetime.datetime.strptime(str(value).strip(), OPERATION_DAY_FORMAT).date()
    except ValueError:
        raise ValidationError("operation_day", f"Invalid operation day {value!r}; expected DD/MM/YYYY")


def format_operation_day(day: datetime.date) -> str:
    return day.strftime(OPERATION_DAY_FORMAT)


def ensure_utc(dt: datetime.datetime) -> datetime.datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=datetime.timezone.utc)
    return dt.astimezone(datetime.timezone.utc)


def local_midnight(day: datetime.date, tz_name: str) -> datetime.datetime:
    return datetime.datetime.combine(day, datetime.time.min).replace(tzinfo=ZoneInfo(tz_name))


def local_day_range_to_utc(day: datetime.date, tz_name: str) -> tuple[datetime.datetime, datetime.datetime]:
    """Half-open ``[start, end)`` UTC bounds of a local calendar day."""
    start_local = local_midnight(day, tz_name)
    end_local = local_midnight(day + datetime.timedelta(days=1), tz_name)
    return start_local.astimezone(datetime.timezone.utc), end_local.astimezone(datetime.timezone.utc)


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)
