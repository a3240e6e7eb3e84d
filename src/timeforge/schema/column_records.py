"""
Column schema records.

Schema introspection (``DESCRIBE table`` and friends) returns one row per
column, but backends disagree on key names: ``Field``/``Type``,
``column_name``/``column_type``, ``name``/``type``. Each attribute is looked up
in an ordered list of candidate keys; a row without any candidate name key
becomes a :class:`RecordKeyNotFound` instead of being guessed at.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from ..engine.classifier import classify_time_field, detect_time_fields
from ..engine.models import ColumnTimeEncoding

logger = logging.getLogger(__name__)

NAME_KEYS: Tuple[str, ...] = ("Field", "column_name", "columnName", "name")
TYPE_KEYS: Tuple[str, ...] = ("Type", "column_type", "data_type", "dataType", "type")
UNIT_KEYS: Tuple[str, ...] = ("timeUnit", "time_unit")


@dataclass(frozen=True)
class RecordKeyNotFound:
    """None of ``candidates`` was present (with a non-empty value) in ``record``."""

    record: Mapping[str, Any]
    candidates: Tuple[str, ...]
    line: Optional[int] = None

    @property
    def message(self) -> str:
        keys = ", ".join(self.candidates)
        where = f" on line {self.line}" if self.line is not None else ""
        return f"Column record{where} has none of the keys: {keys}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "candidates": list(self.candidates),
            "line": self.line,
            "record_keys": sorted(self.record.keys()),
        }


@dataclass
class ColumnParseResult:
    columns: List[ColumnTimeEncoding] = field(default_factory=list)
    skipped: List[RecordKeyNotFound] = field(default_factory=list)
    invalid_lines: List[int] = field(default_factory=list)

    @property
    def time_fields(self) -> List[str]:
        return detect_time_fields(self.columns)

    def get(self, column_name: str) -> Optional[ColumnTimeEncoding]:
        for column in self.columns:
            if column.column_name == column_name:
                return column
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "columns": [c.to_dict() for c in self.columns],
            "time_fields": self.time_fields,
            "skipped": [s.to_dict() for s in self.skipped],
            "invalid_lines": list(self.invalid_lines),
        }


def lookup_key(
    record: Mapping[str, Any],
    candidates: Sequence[str],
    line: Optional[int] = None,
) -> Union[str, RecordKeyNotFound]:
    """Return the first non-empty value among ``candidates``, as a string."""
    for key in candidates:
        value = record.get(key)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return RecordKeyNotFound(record=record, candidates=tuple(candidates), line=line)


def parse_column_record(
    record: Mapping[str, Any],
    line: Optional[int] = None,
) -> Union[ColumnTimeEncoding, RecordKeyNotFound]:
    name = lookup_key(record, NAME_KEYS, line)
    if isinstance(name, RecordKeyNotFound):
        return name
    declared_type = lookup_key(record, TYPE_KEYS, line)
    declared_unit = lookup_key(record, UNIT_KEYS, line)
    return classify_time_field(
        name,
        declared_type=None if isinstance(declared_type, RecordKeyNotFound) else declared_type,
        declared_unit=None if isinstance(declared_unit, RecordKeyNotFound) else declared_unit,
    )


def iter_ndjson(text: str) -> Iterable[Tuple[int, Optional[Dict[str, Any]]]]:
    """Yield ``(line_number, object)`` per non-blank line; bad lines yield None."""
    for number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line:
            continue
        try:
            value = json.loads(line)
        except json.JSONDecodeError as exc:
            logger.warning("Skipping malformed schema line %d: %s", number, exc)
            yield number, None
            continue
        if not isinstance(value, dict):
            logger.warning("Skipping non-object schema line %d", number)
            yield number, None
            continue
        yield number, value


def parse_column_records(rows: Union[str, Iterable[Mapping[str, Any]]]) -> ColumnParseResult:
    """Parse DESCRIBE-style rows given as NDJSON text or as mappings."""
    result = ColumnParseResult()
    if isinstance(rows, str):
        numbered: Iterable[Tuple[Optional[int], Optional[Mapping[str, Any]]]] = iter_ndjson(rows)
    else:
        numbered = ((index, row) for index, row in enumerate(rows, start=1))

    for line, row in numbered:
        if row is None or not isinstance(row, Mapping):
            if line is not None:
                result.invalid_lines.append(line)
            continue
        parsed = parse_column_record(row, line)
        if isinstance(parsed, RecordKeyNotFound):
            logger.warning(parsed.message)
            result.skipped.append(parsed)
        else:
            result.columns.append(parsed)

    logger.debug(
        "Parsed %d column records (%d skipped, %d invalid)",
        len(result.columns),
        len(result.skipped),
        len(result.invalid_lines),
    )
    return result


__all__ = [
    "NAME_KEYS",
    "TYPE_KEYS",
    "UNIT_KEYS",
    "RecordKeyNotFound",
    "ColumnParseResult",
    "lookup_key",
    "parse_column_record",
    "parse_column_records",
    "iter_ndjson",
]
