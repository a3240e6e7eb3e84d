"""
Tests for time variable substitution.

Verifies the $__timeFilter boundary convention (inclusive lower, exclusive
upper), single-pass replacement, unit scaling and fail-closed behaviour when
context is missing.
"""

from __future__ import annotations

import pytest

from timeforge.engine.errors import (
    ConfigurationError,
    MissingContextError,
    ParseError,
    PrecisionError,
)
from timeforge.engine.models import ColumnTimeEncoding, EpochUnit, SubstitutionContext, TimeRange
from timeforge.engine.substitution import (
    build_time_filter,
    find_time_variables,
    replace_time_variables,
    substitute_time_variables,
    uses_time_variables,
)

BASE_NOW = 1_700_000_000_000
TEMPLATE = "SELECT * FROM t WHERE $__timeFilter"


@pytest.fixture
def last_hour():
    return TimeRange(from_="now-1h", to="now")


@pytest.fixture
def epoch_ms_context(last_hour):
    return SubstitutionContext(
        time_range=last_hour,
        time_field="ts",
        encoding=ColumnTimeEncoding("ts", "BIGINT", EpochUnit.MILLISECONDS),
    )


@pytest.fixture
def timestamp_context(last_hour):
    return SubstitutionContext(
        time_range=last_hour,
        time_field="ts",
        encoding=ColumnTimeEncoding("ts", "TIMESTAMP"),
    )


class TestTokenDetection:
    def test_find_time_variables(self):
        template = "SELECT $__timeField, count() FROM t WHERE $__timeFrom < x AND $__timeFrom > y"
        assert find_time_variables(template) == {"timeField", "timeFrom"}

    def test_tokens_are_case_sensitive(self):
        assert not uses_time_variables("WHERE $__timefilter AND $__TIMEFROM")

    def test_longer_identifiers_are_not_tokens(self):
        assert not uses_time_variables("SELECT $__timeFields, $__timeToDate, $__timeFrom_2 FROM t")
        assert find_time_variables("$__timeTo, $__timeFilter(ts)") == {"timeTo", "timeFilter"}

    def test_no_tokens(self):
        assert not uses_time_variables("SELECT 1")
        assert not uses_time_variables(None)

    def test_build_time_filter(self):
        assert build_time_filter("ts", "1", "2") == "ts >= 1 AND ts < 2"


class TestSubstituteTimeVariables:
    def test_epoch_millisecond_filter(self, epoch_ms_context):
        result = substitute_time_variables(TEMPLATE, epoch_ms_context, now_ms=BASE_NOW)
        assert result.ok
        assert result.query == "SELECT * FROM t WHERE ts >= 1699996400000 AND ts < 1700000000000"

    def test_timestamp_filter(self, timestamp_context):
        result = substitute_time_variables(TEMPLATE, timestamp_context, now_ms=BASE_NOW)
        assert result.query == "SELECT * FROM t WHERE ts >= '2023-11-14 21:13:20' AND ts < '2023-11-14 22:13:20'"

    def test_timestamp_filter_in_timezone(self, last_hour):
        context = SubstitutionContext(time_range=last_hour, time_field="ts", timezone="Asia/Tokyo")
        result = substitute_time_variables(TEMPLATE, context, now_ms=BASE_NOW)
        assert result.query == "SELECT * FROM t WHERE ts >= '2023-11-15 06:13:20' AND ts < '2023-11-15 07:13:20'"

    def test_boundary_convention(self, epoch_ms_context):
        result = substitute_time_variables(TEMPLATE, epoch_ms_context, now_ms=BASE_NOW)
        assert ">= 1699996400000" in result.query
        assert "< 1700000000000" in result.query
        assert "<= " not in result.query

    def test_nanosecond_column(self, last_hour):
        context = SubstitutionContext(
            time_range=last_hour,
            time_field="__timestamp",
            encoding=ColumnTimeEncoding("__timestamp", "Int64", EpochUnit.NANOSECONDS),
        )
        result = substitute_time_variables("WHERE $__timeFilter", context, now_ms=BASE_NOW)
        assert result.query == "WHERE __timestamp >= 1699996400000000000 AND __timestamp < 1700000000000000000"

    def test_field_is_classified_when_no_encoding(self, last_hour):
        context = SubstitutionContext(time_range=last_hour, time_field="ts")
        result = substitute_time_variables("$__timeFrom", context, now_ms=BASE_NOW)
        assert result.query == "'2023-11-14 21:13:20'"
        assert result.encoding.epoch_unit is None

    def test_all_tokens_every_occurrence(self, epoch_ms_context):
        template = (
            "SELECT $__timeField AS t FROM x WHERE $__timeFilter "
            "AND $__timeField BETWEEN $__timeFrom AND $__timeTo AND $__timeFrom > 0"
        )
        result = substitute_time_variables(template, epoch_ms_context, now_ms=BASE_NOW)
        assert result.query == (
            "SELECT ts AS t FROM x WHERE ts >= 1699996400000 AND ts < 1700000000000 "
            "AND ts BETWEEN 1699996400000 AND 1700000000000 AND 1699996400000 > 0"
        )
        assert "$__" not in result.query

    def test_interpolated_values(self, epoch_ms_context):
        result = substitute_time_variables("WHERE $__timeFrom", epoch_ms_context, now_ms=BASE_NOW)
        assert result.interpolated.to_dict() == {"timeField": "ts", "timeFrom": "1699996400000"}
        assert result.resolved_range.from_ms == 1_699_996_400_000

    def test_template_without_tokens_is_unchanged(self, epoch_ms_context):
        template = "SELECT * FROM t WHERE x = '$__notAToken'"
        result = substitute_time_variables(template, epoch_ms_context, now_ms=BASE_NOW)
        assert result.query == template
        assert not result.has_time_variables

    def test_substitution_is_idempotent(self, epoch_ms_context):
        first = substitute_time_variables(TEMPLATE, epoch_ms_context, now_ms=BASE_NOW).query
        second = substitute_time_variables(first, epoch_ms_context, now_ms=BASE_NOW + 60_000).query
        assert second == first

    def test_time_field_only_works_with_disabled_range(self):
        context = SubstitutionContext(time_range=TimeRange(from_="", to="", enabled=False), time_field="ts")
        result = substitute_time_variables("SELECT $__timeField FROM t", context, now_ms=BASE_NOW)
        assert result.query == "SELECT ts FROM t"

    def test_non_string_template_is_rejected(self, epoch_ms_context):
        with pytest.raises(TypeError):
            substitute_time_variables(None, epoch_ms_context)


class TestSubstitutionErrors:
    """Failures come back as values and never carry partial output."""

    def test_missing_time_field(self, last_hour):
        result = substitute_time_variables(TEMPLATE, SubstitutionContext(time_range=last_hour), now_ms=BASE_NOW)
        assert isinstance(result.error, MissingContextError)
        assert result.error.field == "time_field"
        assert result.query is None
        assert not result.ok

    def test_missing_time_field_blocks_field_token_too(self, last_hour):
        context = SubstitutionContext(time_range=last_hour, time_field="  ")
        result = substitute_time_variables("SELECT $__timeField", context, now_ms=BASE_NOW)
        assert isinstance(result.error, MissingContextError)

    def test_disabled_range(self):
        context = SubstitutionContext(
            time_range=TimeRange(from_="now-1h", to="now", enabled=False),
            time_field="ts",
        )
        result = substitute_time_variables(TEMPLATE, context, now_ms=BASE_NOW)
        assert isinstance(result.error, MissingContextError)
        assert result.error.field == "time_range.enabled"
        assert result.query is None

    def test_incomplete_range(self):
        context = SubstitutionContext(time_range=TimeRange(from_="now-1h", to=""), time_field="ts")
        result = substitute_time_variables(TEMPLATE, context, now_ms=BASE_NOW)
        assert isinstance(result.error, ConfigurationError)
        assert result.query is None

    def test_unparseable_bound(self):
        context = SubstitutionContext(time_range=TimeRange(from_="an hour ago", to="now"), time_field="ts")
        result = substitute_time_variables(TEMPLATE, context, now_ms=BASE_NOW)
        assert isinstance(result.error, ParseError)
        assert result.error.field == "time_range.from"

    def test_nanosecond_overflow(self):
        context = SubstitutionContext(
            time_range=TimeRange(from_="2300-01-01T00:00:00Z", to="2300-01-02T00:00:00Z"),
            time_field="ts",
            encoding=ColumnTimeEncoding("ts", "BIGINT", EpochUnit.NANOSECONDS),
        )
        result = substitute_time_variables(TEMPLATE, context, now_ms=BASE_NOW)
        assert isinstance(result.error, PrecisionError)

    def test_timestamp_past_datetime_limit_in_offset_zone(self):
        context = SubstitutionContext(
            time_range=TimeRange(from_="9999-12-31T00:00:00Z", to="9999-12-31T23:00:00Z"),
            time_field="ts",
            encoding=ColumnTimeEncoding("ts", "TIMESTAMP"),
            timezone="Asia/Tokyo",
        )
        result = substitute_time_variables(TEMPLATE, context, now_ms=BASE_NOW)
        assert isinstance(result.error, PrecisionError)
        assert result.error.field == "instant"
        assert result.query is None

    def test_time_field_containing_tokens_is_rejected(self, last_hour):
        context = SubstitutionContext(time_range=last_hour, time_field="$__timeTo")
        result = substitute_time_variables(TEMPLATE, context, now_ms=BASE_NOW)
        assert isinstance(result.error, ConfigurationError)

    def test_raise_for_error(self, last_hour):
        result = substitute_time_variables(TEMPLATE, SubstitutionContext(time_range=last_hour), now_ms=BASE_NOW)
        with pytest.raises(MissingContextError):
            result.raise_for_error()

    def test_error_payload(self, last_hour):
        payload = substitute_time_variables(
            TEMPLATE, SubstitutionContext(time_range=last_hour), now_ms=BASE_NOW
        ).to_dict()
        assert payload["query"] is None
        assert payload["error"]["type"] == "missing_context"
        assert payload["error"]["field"] == "time_field"


class TestReplaceTimeVariables:
    def test_replacements_are_not_rescanned(self):
        assert replace_time_variables("$__timeField", {"timeField": "$__timeTo", "timeTo": "x"}) == "$__timeTo"

    def test_tokens_without_replacement_are_kept(self):
        assert replace_time_variables("$__timeFrom $__timeTo", {"timeFrom": "1"}) == "1 $__timeTo"
