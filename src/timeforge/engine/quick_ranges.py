"""Preset time ranges offered by the range picker."""

from __future__ import annotations

from typing import Dict, List, Optional

from .models import TimeRange

DEFAULT_TIME_RANGE = TimeRange(from_="now-1h", to="now", enabled=True, display="Last 1 hour")

# Selecting this disables time filtering entirely.
NO_TIME_FILTER = TimeRange(from_="", to="", enabled=False, display="No time filter")

QUICK_RANGES: List[TimeRange] = [
    TimeRange(from_="now-5m", to="now", display="Last 5 minutes"),
    TimeRange(from_="now-15m", to="now", display="Last 15 minutes"),
    TimeRange(from_="now-30m", to="now", display="Last 30 minutes"),
    TimeRange(from_="now-1h", to="now", display="Last 1 hour"),
    TimeRange(from_="now-3h", to="now", display="Last 3 hours"),
    TimeRange(from_="now-6h", to="now", display="Last 6 hours"),
    TimeRange(from_="now-12h", to="now", display="Last 12 hours"),
    TimeRange(from_="now-24h", to="now", display="Last 24 hours"),
    TimeRange(from_="now-2d", to="now", display="Last 2 days"),
    TimeRange(from_="now-7d", to="now", display="Last 7 days"),
    TimeRange(from_="now-30d", to="now", display="Last 30 days"),
    TimeRange(from_="now-90d", to="now", display="Last 90 days"),
    TimeRange(from_="now-6M", to="now", display="Last 6 months"),
    TimeRange(from_="now-1y", to="now", display="Last 1 year"),
    TimeRange(from_="now/d", to="now", display="Today"),
    TimeRange(from_="now-1d/d", to="now/d", display="Yesterday"),
    TimeRange(from_="now/w", to="now", display="This week"),
    TimeRange(from_="now-1w/w", to="now/w", display="Previous week"),
    TimeRange(from_="now/M", to="now", display="This month"),
    TimeRange(from_="now-1M/M", to="now/M", display="Previous month"),
    TimeRange(from_="now/y", to="now", display="This year"),
    TimeRange(from_="now-1y/y", to="now/y", display="Previous year"),
]

_BY_LABEL: Dict[str, TimeRange] = {r.display.lower(): r for r in QUICK_RANGES if r.display}
_BY_LABEL[NO_TIME_FILTER.display.lower()] = NO_TIME_FILTER


def get_quick_range(label: str) -> Optional[TimeRange]:
    """Look up a preset by its display label (case-insensitive)."""
    if not label:
        return None
    return _BY_LABEL.get(label.strip().lower())


def describe_range(from_: str, to: str) -> Optional[str]:
    """Return the preset label matching a from/to pair, if any."""
    for candidate in QUICK_RANGES:
        if candidate.from_ == from_ and candidate.to == to:
            return candidate.display
    return None


__all__ = ["DEFAULT_TIME_RANGE", "NO_TIME_FILTER", "QUICK_RANGES", "get_quick_range", "describe_range"]
