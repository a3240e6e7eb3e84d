"""
Time range resolver.

Resolves both bounds of a :class:`TimeRange` against one ``now`` snapshot so
a single resolution never straddles two clock readings.
"""

from __future__ import annotations

import logging
from typing import Optional

from .clock import current_time_ms, get_zone
from .errors import ConfigurationError, ParseError
from .models import ResolvedTimeRange, TimeRange
from .parser import evaluate_time_expression, parse_time_expression

logger = logging.getLogger(__name__)


def _resolve_bound(text: str, label: str, now_ms: int, timezone: str) -> int:
    expression = parse_time_expression(text)
    if expression is None:
        raise ParseError(f"Invalid time expression for '{label}': {text!r}", field=f"time_range.{label}")
    try:
        return evaluate_time_expression(expression, now_ms, timezone)
    except ConfigurationError:
        raise
    except (OverflowError, ValueError) as exc:
        raise ParseError(
            f"Time expression for '{label}' is out of range: {text!r}",
            field=f"time_range.{label}",
        ) from exc


def resolve_time_range(
    time_range: TimeRange,
    timezone: str = "UTC",
    now_ms: Optional[int] = None,
) -> ResolvedTimeRange:
    """Resolve ``time_range`` to concrete millisecond bounds.

    Parameters
    ----------
    time_range:
        The range to resolve. Both ``from_`` and ``to`` must be non-empty.
    timezone:
        IANA zone used for naive absolute literals and calendar snapping.
    now_ms:
        Base instant. When omitted the clock is read exactly once.

    Raises
    ------
    ConfigurationError
        If a bound is missing or the timezone is unknown.
    ParseError
        If a bound cannot be parsed.
    """
    if not time_range.from_ or not str(time_range.from_).strip():
        raise ConfigurationError("Time range must have both from and to values", field="time_range.from")
    if not time_range.to or not str(time_range.to).strip():
        raise ConfigurationError("Time range must have both from and to values", field="time_range.to")
    if isinstance(now_ms, bool) or (now_ms is not None and not isinstance(now_ms, int)):
        raise ConfigurationError("now_ms must be an integer number of milliseconds", field="now")

    get_zone(timezone)
    base = current_time_ms() if now_ms is None else now_ms

    from_ms = _resolve_bound(time_range.from_, "from", base, timezone)
    to_ms = _resolve_bound(time_range.to, "to", base, timezone)
    logger.debug(
        "Resolved range %s..%s (tz=%s) to %d..%d",
        time_range.from_,
        time_range.to,
        timezone,
        from_ms,
        to_ms,
    )
    return ResolvedTimeRange(from_ms=from_ms, to_ms=to_ms, now_ms=base, timezone=timezone)


def validate_time_inputs(
    from_input: Optional[str],
    to_input: Optional[str],
    timezone: str = "UTC",
    now_ms: Optional[int] = None,
) -> bool:
    """Return True when both inputs parse and ``from`` is strictly before ``to``."""
    if not from_input or not to_input:
        return False
    try:
        resolved = resolve_time_range(TimeRange(from_=from_input, to=to_input), timezone, now_ms)
    except (ParseError, ConfigurationError):
        return False
    return resolved.from_ms < resolved.to_ms


__all__ = ["resolve_time_range", "validate_time_inputs"]
