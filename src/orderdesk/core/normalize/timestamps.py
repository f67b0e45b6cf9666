from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

from dateutil import parser as dt_parser


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _from_millis(value: float, fallback: datetime) -> datetime:
    try:
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        return fallback


def to_datetime(value: Any, *, default: datetime | None = None) -> datetime:
    """
    Coerces any stored time representation into an aware UTC datetime.

    Accepted: datetime/date, ISO-8601 strings, epoch milliseconds (int, float or
    digit-only strings) and server timestamp objects exposing ``to_datetime()``
    or ``timestamp()``. Missing or unreadable values resolve to ``default``,
    which is "now" unless given.
    """
    fallback = default if default is not None else utc_now()

    if value is None or isinstance(value, bool):
        return fallback

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    if isinstance(value, (int, float)):
        return _from_millis(value, fallback)

    if isinstance(value, str):
        cleaned = value.strip()
        if not cleaned:
            return fallback
        if cleaned.lstrip("-").isdigit():
            return _from_millis(int(cleaned), fallback)
        try:
            parsed = dt_parser.isoparse(cleaned)
        except ValueError:
            try:
                parsed = dt_parser.parse(cleaned)
            except (ValueError, OverflowError):
                return fallback
        return to_datetime(parsed)

    to_dt = getattr(value, "to_datetime", None)
    if callable(to_dt):
        return to_datetime(to_dt(), default=fallback)

    to_ts = getattr(value, "timestamp", None)
    if callable(to_ts):
        return _from_millis(float(to_ts()) * 1000, fallback)

    return fallback


def to_millis(value: Any, *, default: datetime | None = None) -> int:
    """Comparable form used for ordering messages and conversations."""
    return int(to_datetime(value, default=default).timestamp() * 1000)


def to_iso(value: Any) -> str | None:
    if value is None:
        return None
    return to_datetime(value).isoformat()
