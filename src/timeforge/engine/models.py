"""
Data model for the time expression and substitution engine.

Every type here is an immutable value constructed fresh per call. Instants
are carried as integer milliseconds since the Unix epoch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

from .clock import ms_to_datetime


class TimeUnit(str, Enum):
    """Calendar units accepted by the relative time grammar."""

    SECOND = "s"
    MINUTE = "m"
    HOUR = "h"
    DAY = "d"
    WEEK = "w"
    MONTH = "M"
    YEAR = "y"


class EpochUnit(str, Enum):
    """Numeric scale of an integer epoch column."""

    SECONDS = "s"
    MILLISECONDS = "ms"
    MICROSECONDS = "us"
    NANOSECONDS = "ns"

    @classmethod
    def parse(cls, value: Union[str, "EpochUnit", None]) -> Optional["EpochUnit"]:
        """Return the unit for ``value`` or ``None`` when it is not a known unit."""
        if value is None or isinstance(value, EpochUnit):
            return value
        normalised = str(value).strip().lower().replace("μ", "u")
        for unit in cls:
            if unit.value == normalised:
                return unit
        return None


class FieldRole(str, Enum):
    """How a time column stores its values."""

    EPOCH = "epoch"
    TIMESTAMP = "timestamp"


# ---------------------------------------------------------------------------
# Time expressions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Now:
    """The base instant itself."""

    kind = "now"


@dataclass(frozen=True)
class NowOffset:
    sign: int
    amount: int
    unit: TimeUnit

    kind = "now_offset"


@dataclass(frozen=True)
class NowOffsetSnapped:
    """Offset applied to now, then truncated to the start of ``snap_unit``."""

    sign: int
    amount: int
    unit: TimeUnit
    snap_unit: TimeUnit

    kind = "now_offset_snapped"


@dataclass(frozen=True)
class NowSnapped:
    snap_unit: TimeUnit

    kind = "now_snapped"


@dataclass(frozen=True)
class Absolute:
    """A literal instant.

    ``value`` is either a parsed datetime (naive when the literal carried no
    offset) or an integer number of milliseconds for numeric epoch literals.
    """

    literal: str
    value: Union[datetime, int]

    kind = "absolute"


TimeExpression = Union[Now, NowOffset, NowOffsetSnapped, NowSnapped, Absolute]


# ---------------------------------------------------------------------------
# Ranges, encodings and contexts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TimeRange:
    """A {from, to} pair of time expression strings.

    When ``enabled`` is false the range must not be used to build
    ``$__timeFilter``, ``$__timeFrom`` or ``$__timeTo``.
    """

    from_: str
    to: str
    enabled: bool = True
    display: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "TimeRange":
        enabled = payload.get("enabled")
        return cls(
            from_=str(payload.get("from") or ""),
            to=str(payload.get("to") or ""),
            enabled=True if enabled is None else bool(enabled),
            display=payload.get("display"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"from": self.from_, "to": self.to, "enabled": self.enabled}
        if self.display:
            data["display"] = self.display
        return data


@dataclass(frozen=True)
class ColumnTimeEncoding:
    """Time encoding of a column. ``epoch_unit`` of ``None`` means a native timestamp."""

    column_name: str
    declared_type: Optional[str] = None
    epoch_unit: Optional[EpochUnit] = None

    @property
    def role(self) -> FieldRole:
        return FieldRole.TIMESTAMP if self.epoch_unit is None else FieldRole.EPOCH

    def to_dict(self) -> Dict[str, Any]:
        return {
            "column_name": self.column_name,
            "declared_type": self.declared_type,
            "role": self.role.value,
            "epoch_unit": self.epoch_unit.value if self.epoch_unit else None,
        }


@dataclass(frozen=True)
class SubstitutionContext:
    time_range: TimeRange
    time_field: Optional[str] = None
    encoding: Optional[ColumnTimeEncoding] = None
    timezone: str = "UTC"


@dataclass(frozen=True)
class ResolvedTimeRange:
    """Concrete bounds of a range, resolved against a single ``now`` snapshot."""

    from_ms: int
    to_ms: int
    now_ms: int
    timezone: str = "UTC"

    @property
    def duration_ms(self) -> int:
        return self.to_ms - self.from_ms

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from_ms": self.from_ms,
            "to_ms": self.to_ms,
            "now_ms": self.now_ms,
            "timezone": self.timezone,
            "from_iso": ms_to_datetime(self.from_ms, self.timezone).isoformat(),
            "to_iso": ms_to_datetime(self.to_ms, self.timezone).isoformat(),
        }


@dataclass(frozen=True)
class InterpolatedValues:
    time_field: Optional[str] = None
    time_filter: Optional[str] = None
    time_from: Optional[str] = None
    time_to: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            key: value
            for key, value in {
                "timeField": self.time_field,
                "timeFilter": self.time_filter,
                "timeFrom": self.time_from,
                "timeTo": self.time_to,
            }.items()
            if value is not None
        }


@dataclass(frozen=True)
class SubstitutionResult:
    """Outcome of a substitution. ``query`` is ``None`` whenever ``error`` is set."""

    query: Optional[str]
    has_time_variables: bool
    interpolated: InterpolatedValues = field(default_factory=InterpolatedValues)
    resolved_range: Optional[ResolvedTimeRange] = None
    encoding: Optional[ColumnTimeEncoding] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> str:
        """Return the substituted query or raise the captured error."""
        if self.error is not None:
            raise self.error
        assert self.query is not None
        return self.query

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "query": self.query,
            "has_time_variables": self.has_time_variables,
            "interpolated": self.interpolated.to_dict(),
        }
        if self.resolved_range is not None:
            payload["resolved_range"] = self.resolved_range.to_dict()
        if self.encoding is not None:
            payload["encoding"] = self.encoding.to_dict()
        if self.error is not None:
            to_dict = getattr(self.error, "to_dict", None)
            payload["error"] = to_dict() if callable(to_dict) else {"message": str(self.error)}
        return payload


__all__ = [
    "TimeUnit",
    "EpochUnit",
    "FieldRole",
    "Now",
    "NowOffset",
    "NowOffsetSnapped",
    "NowSnapped",
    "Absolute",
    "TimeExpression",
    "TimeRange",
    "ColumnTimeEncoding",
    "SubstitutionContext",
    "ResolvedTimeRange",
    "InterpolatedValues",
    "SubstitutionResult",
]
