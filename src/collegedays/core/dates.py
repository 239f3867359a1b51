from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any, Iterator, Optional

from collegedays.core.errors import InvalidDate, InvalidRange


def _parse_iso(text: str) -> date:
    if len(text) == 10:
        try:
            return date.fromisoformat(text)
        except ValueError as exc:
            raise InvalidDate(f"Invalid date: {text!r}") from exc

    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError as exc:
        raise InvalidDate(f"Invalid date: {text!r}") from exc


def to_calendar_day(value: Any, tz: Optional[tzinfo] = None) -> date:
    """Collapse a date-like value to the calendar day it falls on.

    Aware date-times are shifted into ``tz`` first so every stored instant
    maps to the same local day; naive values keep their wall-clock date.
    """
    if value is None:
        raise InvalidDate("Missing date value")

    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise InvalidDate("Empty date string")
        value = _parse_iso(text)

    # Firestore hands back DatetimeWithNanoseconds, a datetime subclass.
    if isinstance(value, datetime):
        if value.tzinfo is not None and tz is not None:
            value = value.astimezone(tz)
        return value.date()

    if isinstance(value, date):
        return value

    to_datetime = getattr(value, "ToDatetime", None)
    if callable(to_datetime):
        return to_calendar_day(to_datetime(tzinfo=timezone.utc), tz)

    raise InvalidDate(f"Unsupported date value: {value!r}")


def day_key(value: Any, tz: Optional[tzinfo] = None) -> str:
    return to_calendar_day(value, tz).isoformat()


def each_day(start: date, end: date) -> Iterator[date]:
    if start > end:
        raise InvalidRange(f"Start {start.isoformat()} is after end {end.isoformat()}")
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def start_of_day(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)
