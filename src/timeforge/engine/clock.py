"""Integer millisecond instants, timezone lookup and the wall clock."""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone as dt_timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import ConfigurationError, PrecisionError

EPOCH = datetime(1970, 1, 1, tzinfo=dt_timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


def current_time_ms() -> int:
    """Read the wall clock once, as integer milliseconds."""
    return time.time_ns() // 1_000_000


def get_zone(name: str) -> tzinfo:
    """Return the tzinfo for an IANA zone name. ``UTC`` and ``Z`` map to UTC."""
    cleaned = (name or "UTC").strip()
    if cleaned.upper() in {"UTC", "Z", "GMT"}:
        return dt_timezone.utc
    try:
        return ZoneInfo(cleaned)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigurationError(f"Unknown timezone: {name!r}", field="timezone") from exc


def ms_to_datetime(ms: int, zone: str = "UTC") -> datetime:
    tz = get_zone(zone)
    try:
        return (EPOCH + timedelta(milliseconds=ms)).astimezone(tz)
    except OverflowError as exc:
        raise PrecisionError(
            f"Instant {ms} cannot be represented in timezone {zone!r}",
            field="instant",
        ) from exc


def datetime_to_ms(value: datetime) -> int:
    """Convert an aware datetime to milliseconds, flooring sub-millisecond parts."""
    if value.tzinfo is None:
        raise ValueError("datetime_to_ms requires an aware datetime")
    return (value - EPOCH) // _ONE_MS


__all__ = ["EPOCH", "current_time_ms", "get_zone", "ms_to_datetime", "datetime_to_ms"]
