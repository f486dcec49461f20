"""Timestamp helpers shared by the Firestore services.

Documents written by older clients carry timestamps in several encodings
(native Firestore timestamps, ISO strings, plain dates), so every read goes
through the tolerant decoders below.
"""

from __future__ import annotations

import calendar
from datetime import UTC, date, datetime
from typing import Any


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def now_iso() -> str:
    """Current time as an ISO-8601 string, the format stored in documents."""
    return utc_now().isoformat()


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_datetime(value: Any) -> datetime | None:
    """Decode a stored timestamp into an aware UTC datetime.

    Accepts Firestore timestamps (``DatetimeWithNanoseconds`` or protobuf
    ``Timestamp``), ``datetime``/``date`` values and ISO strings. Returns
    ``None`` for missing or unparseable values.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    if hasattr(value, "ToDatetime"):
        try:
            return _as_utc(value.ToDatetime())
        except (TypeError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return _as_utc(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def to_calendar_value(value: Any) -> date | datetime | None:
    """Decode a calendar field (``startDate``, ``endDate``...).

    Date-only values stay ``date`` so callers can treat them as whole days;
    values carrying a time of day become aware datetimes.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return value
    if isinstance(value, str) and len(value.strip()) == 10:
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            return None
    return to_datetime(value)


def has_ended(end_value: Any, now: datetime | None = None) -> bool:
    """Whether a calendar end value lies in the past.

    Date-only end values are inclusive: the window ends after the whole day,
    so a subscription ending 2024-01-31 is still running on that day.
    Unparseable values never count as ended.
    """
    now = _as_utc(now) if now else utc_now()
    end = to_calendar_value(end_value)
    if end is None:
        return False
    if isinstance(end, datetime):
        return end < now
    return end < now.date()


def month_key(year: int, month: int) -> str:
    """Dashboard bucket label, e.g. ``"Jan 2024"``."""
    return f"{calendar.month_abbr[month]} {year}"


def trailing_months(now: datetime, count: int = 6) -> list[tuple[int, int]]:
    """The last ``count`` calendar months as ``(year, month)``, oldest first."""
    months = []
    year, month = now.year, now.month
    for _ in range(count):
        months.append((year, month))
        month -= 1
        if month == 0:
            month = 12
            year -= 1
    return months[::-1]
