"""
Relative time parser.

Grammar::

    expr   := "now" offset? ("/" unit)?
    offset := ("+" | "-") integer unit
    unit   := s | m | h | d | w | M | y

Anything not starting with ``now`` is tried as an absolute literal: an
ISO-8601 date/time, or an all-digit epoch value of 10 to 19 digits. Parsing
never raises; unparseable input yields ``None`` and the caller chooses the
fallback.

For ``now-Nu/s`` the offset is applied first and the result is snapped
afterwards. Reversing that order changes results (``now-25h/d``).
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Optional

from dateutil.parser import isoparse
from dateutil.relativedelta import relativedelta

from .clock import datetime_to_ms, get_zone, ms_to_datetime
from .errors import ConfigurationError
from .models import (
    Absolute,
    Now,
    NowOffset,
    NowOffsetSnapped,
    NowSnapped,
    TimeExpression,
    TimeUnit,
)

logger = logging.getLogger(__name__)

_RELATIVE_RE = re.compile(r"^now(?:(?P<sign>[+-])(?P<amount>\d+)(?P<unit>[smhdwMy]))?(?:/(?P<snap>[smhdwMy]))?$")
_ISO_PREFIX_RE = re.compile(r"^\d{4}-\d{2}(?:-\d{2})?")
_NUMERIC_EPOCH_RE = re.compile(r"^\d{10,19}$")

# Offsets in these units are exact durations; the rest are calendar arithmetic.
_DURATION_UNITS = {
    TimeUnit.SECOND: timedelta(seconds=1),
    TimeUnit.MINUTE: timedelta(minutes=1),
    TimeUnit.HOUR: timedelta(hours=1),
}


def parse_time_expression(text: Optional[str]) -> Optional[TimeExpression]:
    """Parse ``text`` into a :class:`TimeExpression` without evaluating it."""
    if not text or not isinstance(text, str):
        return None
    cleaned = text.strip()
    if not cleaned:
        return None

    if cleaned.startswith("now"):
        match = _RELATIVE_RE.match(cleaned)
        if not match:
            logger.debug("Invalid relative time expression: %r", cleaned)
            return None
        snap = TimeUnit(match.group("snap")) if match.group("snap") else None
        if match.group("sign") is None:
            return NowSnapped(snap) if snap else Now()
        sign = -1 if match.group("sign") == "-" else 1
        amount = int(match.group("amount"))
        unit = TimeUnit(match.group("unit"))
        if snap:
            return NowOffsetSnapped(sign, amount, unit, snap)
        return NowOffset(sign, amount, unit)

    return _parse_absolute(cleaned)


def _parse_absolute(text: str) -> Optional[Absolute]:
    if _NUMERIC_EPOCH_RE.match(text):
        return Absolute(literal=text, value=_epoch_literal_to_ms(text))
    if not _ISO_PREFIX_RE.match(text):
        return None
    try:
        parsed = isoparse(text)
    except (ValueError, OverflowError) as exc:
        logger.debug("Unparseable absolute time %r: %s", text, exc)
        return None
    return Absolute(literal=text, value=parsed)


def _epoch_literal_to_ms(text: str) -> int:
    digits = len(text)
    value = int(text)
    if digits <= 10:
        return value * 1000
    if digits <= 13:
        return value
    if digits <= 16:
        return value // 1000
    return value // 1_000_000


def apply_offset(moment: datetime, amount: int, unit: TimeUnit) -> datetime:
    """Shift an aware datetime by ``amount`` units (negative goes back)."""
    if unit in _DURATION_UNITS:
        shifted = moment.astimezone(dt_timezone.utc) + amount * _DURATION_UNITS[unit]
        return shifted.astimezone(moment.tzinfo)
    if unit is TimeUnit.DAY:
        delta = relativedelta(days=amount)
    elif unit is TimeUnit.WEEK:
        delta = relativedelta(weeks=amount)
    elif unit is TimeUnit.MONTH:
        delta = relativedelta(months=amount)
    else:
        delta = relativedelta(years=amount)
    # Wall-clock arithmetic in the zone, then re-normalise the offset.
    return _normalise(moment + delta)


def snap_to_unit(moment: datetime, unit: TimeUnit) -> datetime:
    """Truncate an aware datetime to the start of the enclosing ``unit``."""
    if unit is TimeUnit.SECOND:
        snapped = moment.replace(microsecond=0)
    elif unit is TimeUnit.MINUTE:
        snapped = moment.replace(second=0, microsecond=0)
    elif unit is TimeUnit.HOUR:
        snapped = moment.replace(minute=0, second=0, microsecond=0)
    else:
        midnight = moment.replace(hour=0, minute=0, second=0, microsecond=0)
        if unit is TimeUnit.DAY:
            snapped = midnight
        elif unit is TimeUnit.WEEK:
            snapped = midnight - timedelta(days=midnight.weekday())
        elif unit is TimeUnit.MONTH:
            snapped = midnight.replace(day=1)
        else:
            snapped = midnight.replace(month=1, day=1)
    return _normalise(snapped)


def _normalise(moment: datetime) -> datetime:
    # Round-trip through UTC so the utcoffset matches the new wall-clock time.
    return moment.astimezone(dt_timezone.utc).astimezone(moment.tzinfo)


def evaluate_time_expression(expression: TimeExpression, now_ms: int, timezone: str = "UTC") -> int:
    """Evaluate a parsed expression against ``now_ms`` and return milliseconds.

    Naive absolute literals are read as wall-clock time in ``timezone``.
    """
    if isinstance(expression, Absolute):
        if isinstance(expression.value, int):
            return expression.value
        value = expression.value
        if value.tzinfo is None:
            value = value.replace(tzinfo=get_zone(timezone))
        return datetime_to_ms(value)

    if isinstance(expression, Now):
        return now_ms

    moment = ms_to_datetime(now_ms, timezone)
    if isinstance(expression, NowSnapped):
        return datetime_to_ms(snap_to_unit(moment, expression.snap_unit))

    moment = apply_offset(moment, expression.sign * expression.amount, expression.unit)
    if isinstance(expression, NowOffsetSnapped):
        moment = snap_to_unit(moment, expression.snap_unit)
    return datetime_to_ms(moment)


def parse_relative_time(text: Optional[str], now_ms: int, timezone: str = "UTC") -> Optional[int]:
    """Parse and evaluate ``text``. Returns ``None`` when it cannot be parsed.

    An unknown ``timezone`` still raises :class:`ConfigurationError`.
    """
    expression = parse_time_expression(text)
    if expression is None:
        return None
    try:
        return evaluate_time_expression(expression, now_ms, timezone)
    except ConfigurationError:
        raise
    except (OverflowError, ValueError):
        logger.debug("Time expression %r is outside the representable range", text)
        return None


def is_relative_expression(text: Optional[str]) -> bool:
    return bool(text) and isinstance(text, str) and text.strip().startswith("now")


__all__ = [
    "parse_time_expression",
    "evaluate_time_expression",
    "parse_relative_time",
    "apply_offset",
    "snap_to_unit",
    "is_relative_expression",
]
