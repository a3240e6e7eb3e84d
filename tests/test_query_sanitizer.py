"""
Tests for the query sanitizer.
"""

from __future__ import annotations

import pytest

from timeforge.engine.sanitizer import (
    clean_database_name,
    extract_query_string,
    find_sanitizer_issues,
    fix_time_filter,
    sanitize_query,
    sanitize_query_artifact,
    strip_at_symbols,
)


class TestStripAtSymbols:
    @pytest.mark.parametrize(
        "query, expected",
        [
            ("SELECT * FROM @mydb.events", "SELECT * FROM mydb.events"),
            ("SELECT * FROM @mydb", "SELECT * FROM mydb"),
            ("SELECT * FROM a JOIN @other ON a.id = other.id", "SELECT * FROM a JOIN other ON a.id = other.id"),
            ("select * from @logs", "select * from logs"),
            ("SELECT 1", "SELECT 1"),
        ],
    )
    def test_strip(self, query, expected):
        assert strip_at_symbols(query) == expected

    def test_empty(self):
        assert strip_at_symbols("") == ""


class TestFixTimeFilter:
    @pytest.mark.parametrize(
        "query, expected",
        [
            ("WHERE $__timeFilter(ts)", "WHERE $__timeFilter"),
            ("WHERE $__timeFilter ( ts )", "WHERE $__timeFilter"),
            ("WHERE '$__timeFilter'", "WHERE $__timeFilter"),
            ('WHERE "$__timeFilter"', "WHERE $__timeFilter"),
            ("WHERE $ __timeFilter", "WHERE $__timeFilter"),
            ("WHERE $__timeFilter AND x = 1", "WHERE $__timeFilter AND x = 1"),
        ],
    )
    def test_fix(self, query, expected):
        assert fix_time_filter(query) == expected

    def test_sanitize_query_combines_fixes(self):
        assert sanitize_query("SELECT * FROM @db.t WHERE $__timeFilter(ts)") == "SELECT * FROM db.t WHERE $__timeFilter"


class TestArtifacts:
    def test_extract_query_string(self):
        assert extract_query_string("SELECT 1") == "SELECT 1"
        assert extract_query_string([{"sql": "SELECT 2"}]) == "SELECT 2"
        assert extract_query_string(["SELECT 3"]) == "SELECT 3"
        assert extract_query_string({"query": "SELECT 4"}) == "SELECT 4"
        assert extract_query_string({"foo": "bar"}) == ""
        assert extract_query_string([]) == ""
        assert extract_query_string(None) == ""

    def test_sanitize_query_artifact(self):
        artifact = {
            "query": [{"sql": "SELECT * FROM @db.t WHERE '$__timeFilter'"}],
            "database": "@my-db!",
            "title": "Errors",
        }
        sanitized = sanitize_query_artifact(artifact)
        assert sanitized == {
            "query": "SELECT * FROM db.t WHERE $__timeFilter",
            "database": "my-db",
            "title": "Errors",
        }
        assert artifact["database"] == "@my-db!"

    def test_invalid_query_is_removed(self):
        assert sanitize_query_artifact({"query": {"foo": 1}, "database": "db"}) == {"database": "db"}

    def test_clean_database_name(self):
        assert clean_database_name("@prod_logs") == "prod_logs"
        assert clean_database_name("a b;c") == "abc"


class TestFindSanitizerIssues:
    def test_clean_query(self):
        assert find_sanitizer_issues("SELECT * FROM db.t WHERE $__timeFilter") == []

    def test_all_issues(self):
        issues = find_sanitizer_issues("SELECT * FROM @db.t WHERE $__timeFilter(ts) OR '$__timeFilter' OR $ __timeFilter")
        messages = [issue.message for issue in issues]
        assert len(issues) == 4
        assert messages[0].startswith("Query contains @ symbols")
        assert "not a function" in messages[1]
        assert "should not be quoted" in messages[2]
