"""
Tests for time range resolution.
"""

from __future__ import annotations

import pytest

from timeforge.engine import resolver as resolver_module
from timeforge.engine.errors import ConfigurationError, ParseError, PrecisionError
from timeforge.engine.models import TimeRange
from timeforge.engine.resolver import resolve_time_range, validate_time_inputs

BASE_NOW = 1_700_000_000_000
HOUR_MS = 3_600_000


class TestResolveTimeRange:
    """Resolution of {from, to} pairs against one base instant."""

    def test_relative_range(self):
        resolved = resolve_time_range(TimeRange(from_="now-1h", to="now"), now_ms=BASE_NOW)
        assert resolved.from_ms == BASE_NOW - HOUR_MS
        assert resolved.to_ms == BASE_NOW
        assert resolved.now_ms == BASE_NOW
        assert resolved.duration_ms == HOUR_MS

    def test_clock_is_read_once(self, monkeypatch):
        readings = iter([BASE_NOW, BASE_NOW + 5_000])
        calls = []

        def fake_clock():
            calls.append(1)
            return next(readings)

        monkeypatch.setattr(resolver_module, "current_time_ms", fake_clock)
        resolved = resolve_time_range(TimeRange(from_="now", to="now"))
        assert len(calls) == 1
        assert resolved.from_ms == resolved.to_ms == BASE_NOW

    def test_mixed_absolute_and_relative(self):
        resolved = resolve_time_range(TimeRange(from_="2023-11-14T00:00:00Z", to="now"), now_ms=BASE_NOW)
        assert resolved.from_ms == 1_699_920_000_000
        assert resolved.to_ms == BASE_NOW

    def test_absolute_bounds_use_timezone(self):
        resolved = resolve_time_range(
            TimeRange(from_="2023-11-14 00:00:00", to="2023-11-15 00:00:00"),
            timezone="Asia/Tokyo",
            now_ms=BASE_NOW,
        )
        assert resolved.from_ms == 1_699_920_000_000 - 9 * HOUR_MS
        assert resolved.duration_ms == 24 * HOUR_MS

    def test_to_dict_renders_iso(self):
        payload = resolve_time_range(TimeRange(from_="now-1h", to="now"), now_ms=BASE_NOW).to_dict()
        assert payload["from_iso"] == "2023-11-14T21:13:20+00:00"
        assert payload["to_iso"] == "2023-11-14T22:13:20+00:00"

    @pytest.mark.parametrize("from_, to, field", [("", "now", "time_range.from"), ("now-1h", "  ", "time_range.to")])
    def test_missing_bound_is_configuration_error(self, from_, to, field):
        with pytest.raises(ConfigurationError) as excinfo:
            resolve_time_range(TimeRange(from_=from_, to=to), now_ms=BASE_NOW)
        assert excinfo.value.field == field

    def test_unparseable_bound_is_parse_error(self):
        with pytest.raises(ParseError) as excinfo:
            resolve_time_range(TimeRange(from_="now-1h", to="tomorrow"), now_ms=BASE_NOW)
        assert excinfo.value.field == "time_range.to"
        assert "tomorrow" in str(excinfo.value)

    def test_unknown_timezone_is_configuration_error(self):
        with pytest.raises(ConfigurationError) as excinfo:
            resolve_time_range(TimeRange(from_="now-1h", to="now"), timezone="Mars/Olympus_Mons", now_ms=BASE_NOW)
        assert excinfo.value.field == "timezone"

    def test_float_now_is_rejected(self):
        with pytest.raises(ConfigurationError):
            resolve_time_range(TimeRange(from_="now-1h", to="now"), now_ms=1.7e12)

    def test_out_of_range_offset_is_parse_error(self):
        with pytest.raises(ParseError):
            resolve_time_range(TimeRange(from_="now-100000y", to="now"), now_ms=BASE_NOW)

    def test_rendering_before_datetime_limit_is_precision_error(self):
        resolved = resolve_time_range(
            TimeRange(from_="0001-01-01T00:00:00Z", to="now"), timezone="America/New_York", now_ms=BASE_NOW
        )
        with pytest.raises(PrecisionError) as excinfo:
            resolved.to_dict()
        assert excinfo.value.field == "instant"

    def test_errors_are_value_errors(self):
        with pytest.raises(ValueError):
            resolve_time_range(TimeRange(from_="garbage", to="now"), now_ms=BASE_NOW)


class TestValidateTimeInputs:
    def test_valid_range(self):
        assert validate_time_inputs("now-1h", "now", now_ms=BASE_NOW)

    def test_inverted_range(self):
        assert not validate_time_inputs("now", "now-1h", now_ms=BASE_NOW)

    def test_empty_range(self):
        assert not validate_time_inputs("now", "now", now_ms=BASE_NOW)

    def test_invalid_inputs(self):
        assert not validate_time_inputs("", "now", now_ms=BASE_NOW)
        assert not validate_time_inputs("soon", "now", now_ms=BASE_NOW)
        assert not validate_time_inputs("now-1h", "now", timezone="Nowhere/Land", now_ms=BASE_NOW)
