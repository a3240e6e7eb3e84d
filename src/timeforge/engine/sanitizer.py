"""
Query sanitizer.

Fixes the mistakes generated queries most often make before they reach the
substitution engine: ``@``-prefixed database references, function-style
``$__timeFilter(col)`` calls, quoted macros and ``$ __timeFilter`` with a
stray space.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from ..shared.validation import ValidationIssue, ValidationSeverity

logger = logging.getLogger(__name__)

_AT_QUALIFIED_RE = re.compile(r"@(\w+)\.")
_AT_FROM_RE = re.compile(r"\bFROM\s+@(\w+)", re.IGNORECASE)
_AT_JOIN_RE = re.compile(r"\bJOIN\s+@(\w+)", re.IGNORECASE)
_AT_ANY_RE = re.compile(r"@(\w+)")

_FUNCTION_FILTER_RE = re.compile(r"\$__timeFilter\s*\([^)]*\)")
_QUOTED_FILTER_RE = re.compile(r"[\"']\$__timeFilter[\"']")
_SPACED_FILTER_RE = re.compile(r"\$\s+__timeFilter")

_DATABASE_NAME_INVALID_RE = re.compile(r"[^a-zA-Z0-9_.-]")


def strip_at_symbols(query: str) -> str:
    """``@db.table`` -> ``db.table``, ``FROM @db`` -> ``FROM db``."""
    if not query:
        return query
    sanitized = _AT_QUALIFIED_RE.sub(r"\1.", query)
    sanitized = _AT_FROM_RE.sub(lambda m: m.group(0).replace("@", "", 1), sanitized)
    sanitized = _AT_JOIN_RE.sub(lambda m: m.group(0).replace("@", "", 1), sanitized)
    return _AT_ANY_RE.sub(r"\1", sanitized)


def fix_time_filter(query: str) -> str:
    """Rewrite common misuses of ``$__timeFilter`` into the bare macro."""
    if not query:
        return query
    fixed = _FUNCTION_FILTER_RE.sub("$__timeFilter", query)
    fixed = _QUOTED_FILTER_RE.sub("$__timeFilter", fixed)
    return _SPACED_FILTER_RE.sub("$__timeFilter", fixed)


def clean_database_name(database: str) -> str:
    if not database:
        return database
    return _DATABASE_NAME_INVALID_RE.sub("", database.lstrip("@"))


def extract_query_string(query: Any) -> str:
    """Pull the SQL text out of the shapes generated artifacts use.

    Accepts a plain string, a list whose first item is a string or a
    ``{"sql": ...}`` mapping, or a mapping with ``sql`` or ``query``.
    Unrecognised shapes yield an empty string.
    """
    if isinstance(query, str):
        return query
    if isinstance(query, list):
        if query and isinstance(query[0], dict) and query[0].get("sql"):
            return str(query[0]["sql"])
        if query and isinstance(query[0], str):
            return query[0]
        logger.warning("Unrecognised query list format: %r", query)
        return ""
    if isinstance(query, dict):
        for key in ("sql", "query"):
            if query.get(key):
                return str(query[key])
        logger.warning("Unrecognised query object format: %r", query)
        return ""
    if query is None:
        return ""
    return str(query)


def sanitize_query(query: str) -> str:
    return fix_time_filter(strip_at_symbols(query))


def sanitize_query_artifact(artifact: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Return a sanitized copy of a query artifact dict (``query``, ``database``)."""
    if not artifact:
        return artifact
    sanitized = dict(artifact)
    if "query" in artifact:
        text = extract_query_string(artifact["query"])
        if text:
            sanitized["query"] = sanitize_query(text)
        else:
            sanitized.pop("query")
    if sanitized.get("database"):
        sanitized["database"] = clean_database_name(sanitized["database"])
    return sanitized


def find_sanitizer_issues(query: str) -> List[ValidationIssue]:
    """Report the problems :func:`sanitize_query` would fix."""
    issues: List[ValidationIssue] = []
    if not query:
        return issues
    if "@" in query:
        issues.append(
            ValidationIssue(
                severity=ValidationSeverity.WARNING,
                category="syntax",
                message="Query contains @ symbols. Database references should not include @ symbols.",
                suggestion="Reference tables as database.table",
            )
        )
    if _FUNCTION_FILTER_RE.search(query):
        issues.append(
            ValidationIssue(
                severity=ValidationSeverity.WARNING,
                category="placeholders",
                message="$__timeFilter is a macro, not a function. Use $__timeFilter without parentheses.",
                location="$__timeFilter",
                suggestion="$__timeFilter",
            )
        )
    if _QUOTED_FILTER_RE.search(query):
        issues.append(
            ValidationIssue(
                severity=ValidationSeverity.WARNING,
                category="placeholders",
                message="$__timeFilter should not be quoted.",
                location="$__timeFilter",
                suggestion="$__timeFilter",
            )
        )
    if _SPACED_FILTER_RE.search(query):
        issues.append(
            ValidationIssue(
                severity=ValidationSeverity.WARNING,
                category="placeholders",
                message="$__timeFilter must not contain whitespace after $.",
                location="$__timeFilter",
                suggestion="$__timeFilter",
            )
        )
    return issues


__all__ = [
    "strip_at_symbols",
    "fix_time_filter",
    "clean_database_name",
    "extract_query_string",
    "sanitize_query",
    "sanitize_query_artifact",
    "find_sanitizer_issues",
]
