"""
Epoch scaler.

Converts integer-millisecond instants to the representation a column stores:
an integer epoch at s/ms/us/ns precision or a ``YYYY-MM-DD HH:MM:SS``
literal. All arithmetic is integer; nanosecond epochs of present-day instants
exceed the 53-bit exact range of a double.
"""

from __future__ import annotations

from typing import Optional

from .clock import ms_to_datetime
from .errors import PrecisionError
from .models import ColumnTimeEncoding, EpochUnit

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

TIMESTAMP_LITERAL_FORMAT = "%Y-%m-%d %H:%M:%S"

_MULTIPLIERS = {
    EpochUnit.MILLISECONDS: 1,
    EpochUnit.MICROSECONDS: 1_000,
    EpochUnit.NANOSECONDS: 1_000_000,
}


def _require_int(ms: object) -> int:
    if isinstance(ms, bool) or not isinstance(ms, int):
        raise PrecisionError(
            f"Instants must be integer milliseconds, got {type(ms).__name__}",
            field="instant",
        )
    return ms


def to_epoch(ms: int, unit: EpochUnit) -> int:
    """Scale ``ms`` to ``unit``. Seconds are floored."""
    ms = _require_int(ms)
    if unit is EpochUnit.SECONDS:
        value = ms // 1000
    else:
        value = ms * _MULTIPLIERS[unit]
    if value < INT64_MIN or value > INT64_MAX:
        raise PrecisionError(
            f"Epoch value {value} ({unit.value}) does not fit in a signed 64-bit integer",
            field="instant",
        )
    return value


def from_epoch(value: int, unit: EpochUnit) -> int:
    """Convert an integer epoch in ``unit`` back to milliseconds (floored)."""
    value = _require_int(value)
    if unit is EpochUnit.SECONDS:
        return value * 1000
    return value // _MULTIPLIERS[unit]


def format_timestamp_literal(ms: int, timezone: str = "UTC") -> str:
    """Render ``ms`` as an unquoted ``YYYY-MM-DD HH:MM:SS`` wall-clock literal."""
    return ms_to_datetime(_require_int(ms), timezone).strftime(TIMESTAMP_LITERAL_FORMAT)


def quote_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def scale_instant(
    ms: int,
    encoding: Optional[ColumnTimeEncoding],
    timezone: str = "UTC",
    quote: bool = True,
) -> str:
    """Render ``ms`` as SQL text for a column with the given encoding.

    Epoch columns get a bare integer; timestamp columns (or no encoding) get
    the literal, single-quoted unless ``quote`` is False.
    """
    if encoding is not None and encoding.epoch_unit is not None:
        return str(to_epoch(ms, encoding.epoch_unit))
    literal = format_timestamp_literal(ms, timezone)
    return quote_literal(literal) if quote else literal


__all__ = [
    "INT64_MIN",
    "INT64_MAX",
    "TIMESTAMP_LITERAL_FORMAT",
    "to_epoch",
    "from_epoch",
    "format_timestamp_literal",
    "quote_literal",
    "scale_instant",
]
