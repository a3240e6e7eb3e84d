"""
Time variable substitution.

Rewrites the four placeholder tokens in a query template:

========================  ================================================
``$__timeField``          the selected time column
``$__timeFilter``         ``<field> >= <from> AND <field> < <to>``
``$__timeFrom``           the lower bound, scaled to the column encoding
``$__timeTo``             the upper bound, scaled to the column encoding
========================  ================================================

Tokens are case-sensitive. Every occurrence is replaced in a single pass over
the original template, so replacement text is never scanned for further
tokens. Failures come back as :class:`SubstitutionResult` values carrying the
error and no query text; a query is never returned half-substituted.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, FrozenSet, Optional

from .classifier import classify_time_field
from .errors import ConfigurationError, MissingContextError, TimeEngineError
from .models import (
    ColumnTimeEncoding,
    InterpolatedValues,
    SubstitutionContext,
    SubstitutionResult,
)
from .resolver import resolve_time_range
from .scaler import scale_instant

logger = logging.getLogger(__name__)

TIME_FIELD = "timeField"
TIME_FILTER = "timeFilter"
TIME_FROM = "timeFrom"
TIME_TO = "timeTo"

TIME_VARIABLES = (TIME_FIELD, TIME_FILTER, TIME_FROM, TIME_TO)
RANGE_VARIABLES: FrozenSet[str] = frozenset({TIME_FILTER, TIME_FROM, TIME_TO})

TIME_VARIABLE_RE = re.compile(r"\$__(timeFilter|timeField|timeFrom|timeTo)(?![A-Za-z0-9_])")


def find_time_variables(template: Optional[str]) -> FrozenSet[str]:
    """Return the names (without ``$__``) of the tokens used in ``template``."""
    if not template or not isinstance(template, str):
        return frozenset()
    return frozenset(match.group(1) for match in TIME_VARIABLE_RE.finditer(template))


def uses_time_variables(template: Optional[str]) -> bool:
    if not template or not isinstance(template, str):
        return False
    return TIME_VARIABLE_RE.search(template) is not None


def build_time_filter(time_field: str, lower: str, upper: str) -> str:
    """Inclusive lower bound, exclusive upper bound."""
    return f"{time_field} >= {lower} AND {time_field} < {upper}"


def replace_time_variables(template: str, replacements: Dict[str, str]) -> str:
    """Replace tokens present in ``replacements`` in one pass; others are left as-is."""

    def _substitute(match: "re.Match[str]") -> str:
        return replacements.get(match.group(1), match.group(0))

    return TIME_VARIABLE_RE.sub(_substitute, template)


def _failure(
    variables: FrozenSet[str],
    error: TimeEngineError,
    encoding: Optional[ColumnTimeEncoding] = None,
) -> SubstitutionResult:
    logger.info("Time variable substitution blocked: %s", error.message)
    return SubstitutionResult(
        query=None,
        has_time_variables=bool(variables),
        encoding=encoding,
        error=error,
    )


def substitute_time_variables(
    template: str,
    context: SubstitutionContext,
    now_ms: Optional[int] = None,
) -> SubstitutionResult:
    """Substitute the time variables of ``template`` using ``context``.

    Parameters
    ----------
    template:
        Query text with zero or more placeholder tokens.
    context:
        Time field, range, optional column encoding and timezone.
    now_ms:
        Base instant for relative bounds; the clock is read once when omitted.

    Returns
    -------
    SubstitutionResult
        ``query`` holds the final text when ``error`` is None. A template
        without tokens is returned unchanged.
    """
    if not isinstance(template, str):
        raise TypeError("template must be a string")

    variables = find_time_variables(template)
    if not variables:
        return SubstitutionResult(query=template, has_time_variables=False)

    time_field = (context.time_field or "").strip()
    if not time_field:
        return _failure(
            variables,
            MissingContextError(
                "Query contains time variables but no time field is selected",
                field="time_field",
            ),
        )
    if TIME_VARIABLE_RE.search(time_field):
        return _failure(
            variables,
            ConfigurationError("Time field must not contain time variables", field="time_field"),
        )

    needs_range = bool(variables & RANGE_VARIABLES)
    if needs_range and not context.time_range.enabled:
        return _failure(
            variables,
            MissingContextError(
                "Query contains time range variables but time range is disabled",
                field="time_range.enabled",
            ),
        )

    replacements: Dict[str, str] = {TIME_FIELD: time_field}
    encoding = context.encoding
    resolved = None

    if needs_range:
        try:
            if encoding is None:
                encoding = classify_time_field(time_field)
            resolved = resolve_time_range(context.time_range, context.timezone, now_ms)
            lower = scale_instant(resolved.from_ms, encoding, context.timezone)
            upper = scale_instant(resolved.to_ms, encoding, context.timezone)
        except TimeEngineError as exc:
            return _failure(variables, exc, encoding)

        replacements[TIME_FILTER] = build_time_filter(time_field, lower, upper)
        replacements[TIME_FROM] = lower
        replacements[TIME_TO] = upper

    query = replace_time_variables(template, replacements)
    interpolated = InterpolatedValues(
        time_field=time_field,
        time_filter=replacements.get(TIME_FILTER) if TIME_FILTER in variables else None,
        time_from=replacements.get(TIME_FROM) if TIME_FROM in variables else None,
        time_to=replacements.get(TIME_TO) if TIME_TO in variables else None,
    )
    logger.debug("Substituted %s in query using field %s", sorted(variables), time_field)
    return SubstitutionResult(
        query=query,
        has_time_variables=True,
        interpolated=interpolated,
        resolved_range=resolved,
        encoding=encoding,
    )


__all__ = [
    "TIME_VARIABLES",
    "RANGE_VARIABLES",
    "TIME_VARIABLE_RE",
    "find_time_variables",
    "uses_time_variables",
    "build_time_filter",
    "replace_time_variables",
    "substitute_time_variables",
]
