"""
Time field classifier.

Decides whether a column holds a native timestamp or an integer epoch and,
for epochs, at which precision. The declared column type decides the role;
the unit comes from an explicitly declared unit when there is one and from
the column name otherwise.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional, Sequence, Union

from .models import ColumnTimeEncoding, EpochUnit, FieldRole

logger = logging.getLogger(__name__)

SENTINEL_TIME_COLUMN = "__timestamp"

_WRAPPER_RE = re.compile(r"^(?:nullable|lowcardinality)\((.*)\)$")
_PARAMS_RE = re.compile(r"\(.*\)$")
_INTEGER_TYPE_RE = re.compile(
    r"^(?:u?(?:tiny|small|medium|big|huge)?int(?:eger)?\d*|u?long|int\d+|uint\d+|hugeint|ubigint)$"
)
_TEMPORAL_TYPE_RE = re.compile(r"(?:timestamp|datetime|date|time)")
# Pseudo-types emitted by schema detection for integer epoch columns.
_UNIT_TYPE_RE = re.compile(r"^timestamp_(ns|us|ms|s)$")

# Ordered: "_ms" has to win over "_s".
_NAME_SUFFIX_UNITS = (
    ("_ns", EpochUnit.NANOSECONDS),
    ("_us", EpochUnit.MICROSECONDS),
    ("_μs", EpochUnit.MICROSECONDS),
    ("_ms", EpochUnit.MILLISECONDS),
    ("_s", EpochUnit.SECONDS),
)

_TIME_NAME_HINTS = ("time", "date", "timestamp")
_TIME_NAME_SUFFIXES = ("_at", "_ts", "_time", "_date")


def normalise_type(declared_type: Optional[str]) -> str:
    """Lower-case a declared type and strip wrappers, length params and ``unsigned``."""
    if not declared_type:
        return ""
    text = declared_type.strip().lower()
    while True:
        match = _WRAPPER_RE.match(text)
        if not match:
            break
        text = match.group(1).strip()
    text = text.replace("unsigned", "").strip()
    text = _PARAMS_RE.sub("", text).strip()
    return text


def role_for_type(declared_type: Optional[str]) -> FieldRole:
    """Map a declared type to a role; unknown or missing types are timestamps."""
    normalised = normalise_type(declared_type)
    if not normalised:
        return FieldRole.TIMESTAMP
    if _UNIT_TYPE_RE.match(normalised):
        return FieldRole.EPOCH
    if _INTEGER_TYPE_RE.match(normalised):
        return FieldRole.EPOCH
    return FieldRole.TIMESTAMP


def is_temporal_type(declared_type: Optional[str]) -> bool:
    normalised = normalise_type(declared_type)
    return bool(normalised) and bool(_TEMPORAL_TYPE_RE.search(normalised))


def is_time_like_name(column_name: str) -> bool:
    lowered = column_name.lower()
    return (
        lowered == SENTINEL_TIME_COLUMN
        or any(hint in lowered for hint in _TIME_NAME_HINTS)
        or lowered.endswith(_TIME_NAME_SUFFIXES)
    )


def infer_epoch_unit_from_name(column_name: str) -> EpochUnit:
    """Infer an epoch unit from a column name.

    ``_ns``/``_us``/``_ms``/``_s`` suffixes map directly, the ``__timestamp``
    sentinel is nanoseconds and everything else defaults to milliseconds.
    """
    lowered = column_name.strip().lower()
    for suffix, unit in _NAME_SUFFIX_UNITS:
        if lowered.endswith(suffix):
            return unit
    if lowered == SENTINEL_TIME_COLUMN:
        return EpochUnit.NANOSECONDS
    return EpochUnit.MILLISECONDS


def classify_time_field(
    column_name: str,
    declared_type: Optional[str] = None,
    declared_unit: Union[str, EpochUnit, None] = None,
) -> ColumnTimeEncoding:
    """Classify a time column.

    Args:
        column_name: Column used as the time axis.
        declared_type: Column type from schema introspection, if known.
        declared_unit: Epoch unit declared on the column schema. Overrides
            the name-based inference.

    Returns:
        ColumnTimeEncoding with ``epoch_unit`` set for epoch columns and
        ``None`` for native timestamps.
    """
    if not column_name or not column_name.strip():
        raise ValueError("column_name must be a non-empty string")

    explicit_unit = EpochUnit.parse(declared_unit)
    if declared_unit is not None and explicit_unit is None:
        logger.warning("Ignoring unknown epoch unit %r declared on %s", declared_unit, column_name)

    normalised = normalise_type(declared_type)
    if normalised:
        role = role_for_type(normalised)
    else:
        # No type: only an explicit unit can make the column an epoch.
        role = FieldRole.EPOCH if explicit_unit else FieldRole.TIMESTAMP

    if role is FieldRole.TIMESTAMP:
        return ColumnTimeEncoding(column_name=column_name, declared_type=declared_type)

    unit = explicit_unit
    if unit is None:
        type_unit = _UNIT_TYPE_RE.match(normalised)
        unit = EpochUnit(type_unit.group(1)) if type_unit else infer_epoch_unit_from_name(column_name)

    logger.debug("Classified %s (%s) as epoch/%s", column_name, declared_type, unit.value)
    return ColumnTimeEncoding(column_name=column_name, declared_type=declared_type, epoch_unit=unit)


# Lower bounds of plausible present-day epoch values at each precision.
_SAMPLE_THRESHOLDS = (
    (10**18, EpochUnit.NANOSECONDS),
    (10**15, EpochUnit.MICROSECONDS),
    (10**12, EpochUnit.MILLISECONDS),
    (10**9, EpochUnit.SECONDS),
)


def infer_unit_from_samples(values: Iterable[object]) -> EpochUnit:
    """Infer an epoch unit from sample values by integer magnitude.

    Non-integer and non-positive samples are ignored. The mean is computed
    with integer division so nanosecond samples keep full precision.
    """
    samples: List[int] = []
    for value in values:
        if isinstance(value, bool):
            continue
        if isinstance(value, int):
            number = value
        elif isinstance(value, str) and value.strip().isdigit():
            number = int(value.strip())
        else:
            continue
        if number > 0:
            samples.append(number)
    if not samples:
        return EpochUnit.MILLISECONDS

    mean = sum(samples) // len(samples)
    for threshold, unit in _SAMPLE_THRESHOLDS:
        if mean > threshold:
            return unit
    return EpochUnit.MILLISECONDS


def detect_time_fields(columns: Sequence[ColumnTimeEncoding]) -> List[str]:
    """Return the names of columns that look like time axes, in schema order."""
    names: List[str] = []
    for column in columns:
        if not column.column_name:
            continue
        if column.epoch_unit is not None and column.declared_type is None:
            names.append(column.column_name)
        elif is_temporal_type(column.declared_type) or is_time_like_name(column.column_name):
            names.append(column.column_name)
    return names


__all__ = [
    "SENTINEL_TIME_COLUMN",
    "normalise_type",
    "role_for_type",
    "is_temporal_type",
    "is_time_like_name",
    "infer_epoch_unit_from_name",
    "classify_time_field",
    "infer_unit_from_samples",
    "detect_time_fields",
]
