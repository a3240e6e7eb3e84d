"""
Context validation for time-variable queries.

Gates execution before substitution: a template that uses any of the time
variables needs a selected time field and an enabled, complete time range.
:func:`validate_time_context` returns the plain list of violations;
:class:`TimeContextValidator` wraps the same checks in the structured payload
the other validators produce and adds non-blocking warnings for bounds that
will not parse and for misspelled placeholders.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from ..shared.validation import (
    BaseValidator,
    ValidationIssue,
    ValidationSeverity,
    check_balanced_quotes,
    suggest_similar,
)
from .models import TimeRange
from .parser import parse_time_expression
from .substitution import TIME_VARIABLES, find_time_variables

logger = logging.getLogger(__name__)

NO_TIME_FIELD_MESSAGE = "Query contains time variables but no time field is selected"
RANGE_DISABLED_MESSAGE = "Query contains time variables but time range is disabled"
RANGE_INCOMPLETE_MESSAGE = "Query contains time variables but time range is incomplete"

# Anything that looks like an attempt at a macro: "$__foo", "$ __foo", "$__foo(".
_MACRO_LIKE_RE = re.compile(r"\$\s*__([A-Za-z_]+)(\s*\()?")
_QUOTED_MACRO_RE = re.compile(r"(['\"])\$__(?:timeFilter|timeField|timeFrom|timeTo)\1")

_CANONICAL_TOKENS = [f"$__{name}" for name in TIME_VARIABLES]


def validate_time_context(
    template: Optional[str],
    time_field: Optional[str],
    time_range: Optional[TimeRange],
) -> List[str]:
    """Return the reasons ``template`` cannot run in this context.

    An empty list means the query may execute. Templates without time
    variables are always valid.
    """
    if not find_time_variables(template):
        return []

    violations: List[str] = []
    if not time_field or not time_field.strip():
        violations.append(NO_TIME_FIELD_MESSAGE)
    if time_range is None or not time_range.enabled:
        violations.append(RANGE_DISABLED_MESSAGE)
    elif not (time_range.from_ or "").strip() or not (time_range.to or "").strip():
        violations.append(RANGE_INCOMPLETE_MESSAGE)
    return violations


def is_time_context_valid(
    template: Optional[str],
    time_field: Optional[str],
    time_range: Optional[TimeRange],
) -> bool:
    return not validate_time_context(template, time_field, time_range)


class TimeContextValidator(BaseValidator):
    """Structured validator for time-variable templates.

    Expected context keys: ``time_field`` (str), ``time_range``
    (:class:`TimeRange` or its dict form) and optionally ``timezone``.
    """

    def get_name(self) -> str:
        return "time_context"

    def checks(self, query: str, context: Dict[str, Any]) -> Dict[str, List[ValidationIssue]]:
        time_field = context.get("time_field")
        time_range = context.get("time_range")
        if isinstance(time_range, dict):
            time_range = TimeRange.from_dict(time_range)

        return {
            "context": self._check_context(query, time_field, time_range),
            "range": self._check_range_bounds(query, time_range),
            "placeholders": self._check_placeholders(query),
            "syntax": self._check_syntax(query),
        }

    def _check_context(
        self,
        query: str,
        time_field: Optional[str],
        time_range: Optional[TimeRange],
    ) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        for message in validate_time_context(query, time_field, time_range):
            if message == NO_TIME_FIELD_MESSAGE:
                location, suggestion = "time_field", "Select the column to use as the time axis"
            elif message == RANGE_DISABLED_MESSAGE:
                location, suggestion = "time_range.enabled", "Enable the time range or remove the time variables"
            else:
                location = "time_range.from" if time_range and not (time_range.from_ or "").strip() else "time_range.to"
                suggestion = "Provide both a from and a to value, e.g. now-1h and now"
            issues.append(
                ValidationIssue(
                    severity=ValidationSeverity.ERROR,
                    category="context",
                    message=message,
                    location=location,
                    suggestion=suggestion,
                )
            )
        return issues

    def _check_range_bounds(self, query: str, time_range: Optional[TimeRange]) -> List[ValidationIssue]:
        if time_range is None or not time_range.enabled or not find_time_variables(query):
            return []
        issues: List[ValidationIssue] = []
        for label, value in (("from", time_range.from_), ("to", time_range.to)):
            if value and value.strip() and parse_time_expression(value) is None:
                issues.append(
                    ValidationIssue(
                        severity=ValidationSeverity.WARNING,
                        category="range",
                        message=f"Time range '{label}' value {value!r} is not a valid time expression",
                        location=f"time_range.{label}",
                        suggestion="Use now, now-1h, now-7d/d or an ISO-8601 date",
                    )
                )
        return issues

    def _check_placeholders(self, query: str) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        if not query:
            return issues
        seen = set()
        for match in _MACRO_LIKE_RE.finditer(query):
            raw = match.group(0).rstrip("(").rstrip()
            name = match.group(1)
            if match.group(2):
                issues.append(
                    ValidationIssue(
                        severity=ValidationSeverity.WARNING,
                        category="placeholders",
                        message=f"Function-style macro '{raw}(...)' is not supported",
                        location=raw,
                        suggestion=f"Use $__{name} without arguments; the selected time field is applied automatically",
                    )
                )
                continue
            if name in TIME_VARIABLES and raw == f"$__{name}":
                continue
            if raw in seen:
                continue
            seen.add(raw)
            suggestions = suggest_similar(raw.replace(" ", ""), _CANONICAL_TOKENS, max_suggestions=1)
            if not suggestions:
                continue
            logger.debug("Unknown placeholder %s, closest match %s", raw, suggestions[0])
            issues.append(
                ValidationIssue(
                    severity=ValidationSeverity.WARNING,
                    category="placeholders",
                    message=f"Unknown placeholder '{raw}' will not be substituted",
                    location=raw,
                    suggestion=f"Did you mean {suggestions[0]}?",
                )
            )
        for match in _QUOTED_MACRO_RE.finditer(query):
            issues.append(
                ValidationIssue(
                    severity=ValidationSeverity.WARNING,
                    category="placeholders",
                    message=f"Quoted macro {match.group(0)} will be substituted inside a string literal",
                    location=match.group(0),
                    suggestion="Remove the quotes around the macro",
                )
            )
        return issues

    def _check_syntax(self, query: str) -> List[ValidationIssue]:
        issue = check_balanced_quotes(query or "")
        return [issue] if issue else []


__all__ = [
    "NO_TIME_FIELD_MESSAGE",
    "RANGE_DISABLED_MESSAGE",
    "RANGE_INCOMPLETE_MESSAGE",
    "validate_time_context",
    "is_time_context_valid",
    "TimeContextValidator",
]
