"""
MCP server tools for time expressions and time-variable substitution.

Each tool delegates to a module-level handler that takes the runtime
explicitly, so the behaviour can be exercised without an MCP client.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastmcp import FastMCP

from timeforge.engine.classifier import classify_time_field
from timeforge.engine.clock import ms_to_datetime
from timeforge.engine.context_validator import TimeContextValidator, validate_time_context
from timeforge.engine.errors import TimeEngineError
from timeforge.engine.models import SubstitutionContext, TimeRange
from timeforge.engine.parser import evaluate_time_expression, parse_time_expression
from timeforge.engine.quick_ranges import DEFAULT_TIME_RANGE, NO_TIME_FILTER, QUICK_RANGES
from timeforge.engine.resolver import resolve_time_range
from timeforge.engine.sanitizer import find_sanitizer_issues, sanitize_query
from timeforge.engine.share_links import SharedQueryParams, decode_share_params, encode_share_params
from timeforge.engine.substitution import find_time_variables, substitute_time_variables
from timeforge.server.server_runtime import ServerRuntime

logger = logging.getLogger(__name__)


def _build_range(
    runtime: ServerRuntime,
    time_from: Optional[str],
    time_to: Optional[str],
    enabled: bool = True,
) -> TimeRange:
    if time_from is None and time_to is None:
        default = runtime.config.default_range()
        return TimeRange(from_=default.from_, to=default.to, enabled=enabled)
    return TimeRange(from_=time_from or "", to=time_to or "", enabled=enabled)


def _base_now(runtime: ServerRuntime, now_ms: Optional[int]) -> int:
    return runtime.now_ms() if now_ms is None else now_ms


def parse_expression(
    runtime: ServerRuntime,
    expression: str,
    now_ms: Optional[int] = None,
    timezone: Optional[str] = None,
) -> Dict[str, Any]:
    parsed = parse_time_expression(expression)
    if parsed is None:
        return {"expression": expression, "valid": False, "error": f"Invalid time expression: {expression!r}"}

    tz = runtime.config.resolve_timezone(timezone)
    base = _base_now(runtime, now_ms)
    instant = evaluate_time_expression(parsed, base, tz)
    return {
        "expression": expression,
        "valid": True,
        "kind": parsed.kind,
        "instant_ms": instant,
        "instant_iso": ms_to_datetime(instant, tz).isoformat(),
        "now_ms": base,
        "timezone": tz,
    }


def resolve_range(
    runtime: ServerRuntime,
    time_from: Optional[str] = None,
    time_to: Optional[str] = None,
    timezone: Optional[str] = None,
    now_ms: Optional[int] = None,
) -> Dict[str, Any]:
    tz = runtime.config.resolve_timezone(timezone)
    resolved = resolve_time_range(_build_range(runtime, time_from, time_to), tz, _base_now(runtime, now_ms))
    payload = resolved.to_dict()
    payload["duration_ms"] = resolved.duration_ms
    return payload


def classify_field(
    runtime: ServerRuntime,
    column_name: str,
    declared_type: Optional[str] = None,
    declared_unit: Optional[str] = None,
    database: Optional[str] = None,
    table: Optional[str] = None,
) -> Dict[str, Any]:
    if database is not None and table and declared_type is None and declared_unit is None:
        cached = runtime.lookup_column(database, table, column_name)
        if cached is not None:
            return {**cached.to_dict(), "source": "registered_schema"}
    encoding = classify_time_field(column_name, declared_type, declared_unit)
    return {**encoding.to_dict(), "source": "declared" if declared_type or declared_unit else "name"}


def register_columns(
    runtime: ServerRuntime,
    database: str,
    table: str,
    rows: Any,
) -> Dict[str, Any]:
    parsed = runtime.register_columns(database, table, rows)
    return {"database": database, "table": table, **parsed.to_dict()}


def substitute_query(
    runtime: ServerRuntime,
    query: str,
    time_field: Optional[str] = None,
    time_from: Optional[str] = None,
    time_to: Optional[str] = None,
    enabled: bool = True,
    timezone: Optional[str] = None,
    database: Optional[str] = None,
    table: Optional[str] = None,
    declared_type: Optional[str] = None,
    declared_unit: Optional[str] = None,
    now_ms: Optional[int] = None,
    sanitize: bool = False,
) -> Dict[str, Any]:
    text = sanitize_query(query) if sanitize else query

    encoding = None
    if time_field and (declared_type or declared_unit):
        encoding = classify_time_field(time_field, declared_type, declared_unit)
    elif time_field and database is not None and table:
        encoding = runtime.lookup_column(database, table, time_field)

    context = SubstitutionContext(
        time_range=_build_range(runtime, time_from, time_to, enabled),
        time_field=time_field,
        encoding=encoding,
        timezone=runtime.config.resolve_timezone(timezone),
    )
    result = substitute_time_variables(text, context, _base_now(runtime, now_ms))
    payload = result.to_dict()
    if sanitize:
        payload["sanitized_query"] = text
    return payload


def validate_context(
    query: str,
    time_field: Optional[str] = None,
    time_from: Optional[str] = None,
    time_to: Optional[str] = None,
    enabled: bool = True,
) -> Dict[str, Any]:
    time_range = TimeRange(from_=time_from or "", to=time_to or "", enabled=enabled)
    report = TimeContextValidator().validate(query, {"time_field": time_field, "time_range": time_range})
    report["violations"] = validate_time_context(query, time_field, time_range)
    report["time_variables"] = sorted(find_time_variables(query))
    return report


def sanitize_report(query: str) -> Dict[str, Any]:
    issues = find_sanitizer_issues(query)
    return {
        "query": sanitize_query(query),
        "changed": sanitize_query(query) != query,
        "issues": [issue.to_dict() for issue in issues],
    }


def list_quick_ranges() -> Dict[str, Any]:
    return {
        "default": DEFAULT_TIME_RANGE.to_dict(),
        "no_time_filter": NO_TIME_FILTER.to_dict(),
        "quick_ranges": [r.to_dict() for r in QUICK_RANGES],
    }


def encode_share_link(
    query: str,
    db: str,
    table: Optional[str] = None,
    time_field: Optional[str] = None,
    time_from: Optional[str] = None,
    time_to: Optional[str] = None,
    enabled: bool = True,
) -> Dict[str, Any]:
    time_range = None
    if time_from and time_to:
        time_range = TimeRange(from_=time_from, to=time_to, enabled=enabled)
    params = SharedQueryParams.from_state(query, db, table, time_field, time_range)
    return {"fragment": encode_share_params(params), "params": params.to_dict()}


def decode_share_link(fragment: str) -> Dict[str, Any]:
    params = decode_share_params(fragment)
    if params is None:
        return {"error": "Share link could not be decoded"}
    time_range = params.time_range()
    return {
        "params": params.to_dict(),
        "time_range": time_range.to_dict() if time_range else None,
    }


def register_time_tools(mcp: FastMCP, runtime: ServerRuntime) -> None:
    """Register time expression and substitution tools."""

    @mcp.tool
    def time_parse_expression(
        expression: str,
        now_ms: Optional[int] = None,
        timezone: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Parse and evaluate a time expression.

        Args:
            expression: Relative expression (now, now-1h, now-7d/d, now/w) or ISO-8601 / epoch literal
            now_ms: Base instant in epoch milliseconds; defaults to the server clock
            timezone: IANA timezone for snapping and naive literals (default from config)

        Returns:
            Dictionary with the evaluated instant, or valid=False for unparseable input
        """
        try:
            return parse_expression(runtime, expression, now_ms, timezone)
        except (TimeEngineError, ValueError, OverflowError) as exc:
            logger.warning("Failed to parse time expression %r: %s", expression, exc)
            return {"error": str(exc)}

    @mcp.tool
    def time_resolve_range(
        time_from: Optional[str] = None,
        time_to: Optional[str] = None,
        timezone: Optional[str] = None,
        now_ms: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Resolve a from/to range to epoch milliseconds against a single clock reading.

        Args:
            time_from: Lower bound expression (defaults to the configured range when both are omitted)
            time_to: Upper bound expression
            timezone: IANA timezone
            now_ms: Base instant in epoch milliseconds

        Returns:
            Dictionary with from_ms, to_ms, now_ms and ISO renderings
        """
        try:
            return resolve_range(runtime, time_from, time_to, timezone, now_ms)
        except TimeEngineError as exc:
            logger.warning("Failed to resolve time range: %s", exc)
            return {"error": str(exc), "details": exc.to_dict()}

    @mcp.tool
    def time_classify_field(
        column_name: str,
        declared_type: Optional[str] = None,
        declared_unit: Optional[str] = None,
        database: Optional[str] = None,
        table: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Classify a time column as a native timestamp or an integer epoch with a unit.

        Args:
            column_name: Column used as the time axis
            declared_type: Column type from DESCRIBE (e.g. 'BIGINT', 'TIMESTAMP')
            declared_unit: Explicit epoch unit (s, ms, us, ns); overrides name inference
            database: Database of a registered table to look the column up in
            table: Registered table name

        Returns:
            Dictionary with role and epoch_unit
        """
        try:
            return classify_field(runtime, column_name, declared_type, declared_unit, database, table)
        except ValueError as exc:
            logger.warning("Failed to classify time field %r: %s", column_name, exc)
            return {"error": str(exc)}

    @mcp.tool
    def time_register_columns(database: str, table: str, rows: Any) -> Dict[str, Any]:
        """
        Register a table's column schema for later time field lookups.

        Args:
            database: Database name
            table: Table name
            rows: DESCRIBE result as NDJSON text or a list of objects with
                  name/type keys (Field/Type, column_name/column_type, name/type)

        Returns:
            Dictionary with parsed columns, detected time fields and skipped rows
        """
        try:
            return register_columns(runtime, database, table, rows)
        except (TimeEngineError, ValueError, TypeError) as exc:
            logger.error("Failed to register columns for %s.%s: %s", database, table, exc)
            return {"error": str(exc)}

    @mcp.tool
    def time_substitute_query(
        query: str,
        time_field: Optional[str] = None,
        time_from: Optional[str] = None,
        time_to: Optional[str] = None,
        enabled: bool = True,
        timezone: Optional[str] = None,
        database: Optional[str] = None,
        table: Optional[str] = None,
        declared_type: Optional[str] = None,
        declared_unit: Optional[str] = None,
        now_ms: Optional[int] = None,
        sanitize: bool = False,
    ) -> Dict[str, Any]:
        """
        Replace $__timeFilter, $__timeField, $__timeFrom and $__timeTo in a query.

        Args:
            query: Query template
            time_field: Column used as the time axis
            time_from: Lower bound expression (e.g. 'now-1h')
            time_to: Upper bound expression (e.g. 'now')
            enabled: False when the time range is switched off
            timezone: IANA timezone
            database: Database of a registered table providing the column type
            table: Registered table name
            declared_type: Column type, when not registered
            declared_unit: Explicit epoch unit, when not registered
            now_ms: Base instant in epoch milliseconds
            sanitize: Fix @-prefixed references and malformed $__timeFilter first

        Returns:
            Dictionary with the final query, or query=None and an error
        """
        try:
            return substitute_query(
                runtime,
                query,
                time_field=time_field,
                time_from=time_from,
                time_to=time_to,
                enabled=enabled,
                timezone=timezone,
                database=database,
                table=table,
                declared_type=declared_type,
                declared_unit=declared_unit,
                now_ms=now_ms,
                sanitize=sanitize,
            )
        except (TimeEngineError, ValueError, TypeError) as exc:
            logger.error("Failed to substitute time variables: %s", exc)
            return {"error": str(exc)}

    @mcp.tool
    def time_validate_context(
        query: str,
        time_field: Optional[str] = None,
        time_from: Optional[str] = None,
        time_to: Optional[str] = None,
        enabled: bool = True,
    ) -> Dict[str, Any]:
        """
        Check whether a query has the context its time variables need.

        Returns:
            Validation payload with errors, warnings and the plain violation list
        """
        try:
            return validate_context(query, time_field, time_from, time_to, enabled)
        except ValueError as exc:
            logger.error("Failed to validate time context: %s", exc)
            return {"error": str(exc)}

    @mcp.tool
    def time_sanitize_query(query: str) -> Dict[str, Any]:
        """Fix @-prefixed database references and malformed $__timeFilter usage."""
        return sanitize_report(query)

    @mcp.tool
    def time_list_quick_ranges() -> Dict[str, Any]:
        """List the preset time ranges (Last 1 hour, Today, Previous week, ...)."""
        return list_quick_ranges()

    @mcp.tool
    def time_encode_share_link(
        query: str,
        db: str,
        table: Optional[str] = None,
        time_field: Optional[str] = None,
        time_from: Optional[str] = None,
        time_to: Optional[str] = None,
        enabled: bool = True,
    ) -> Dict[str, Any]:
        """Encode query state as a shareable link fragment."""
        return encode_share_link(query, db, table, time_field, time_from, time_to, enabled)

    @mcp.tool
    def time_decode_share_link(fragment: str) -> Dict[str, Any]:
        """Decode a shareable link fragment back into query state."""
        return decode_share_link(fragment)


__all__: List[str] = [
    "register_time_tools",
    "parse_expression",
    "resolve_range",
    "classify_field",
    "register_columns",
    "substitute_query",
    "validate_context",
    "sanitize_report",
    "list_quick_ranges",
    "encode_share_link",
    "decode_share_link",
]
