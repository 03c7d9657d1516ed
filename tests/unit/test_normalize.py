"""Unit tests for content_etl.normalize."""

import math
from datetime import date, datetime, timezone

from content_etl.normalize import (
    clean_header,
    match_key,
    normalize_space,
    parse_bool,
    parse_date,
    parse_number,
    slug_name,
    split_list,
    today_iso,
    trim,
)


# ---------------------------------------------------------------------------
# trim
# ---------------------------------------------------------------------------

class TestTrim:
    def test_strips_whitespace(self):
        assert trim("  hello  ") == "hello"

    def test_empty_string_returns_none(self):
        assert trim("") is None

    def test_whitespace_only_returns_none(self):
        assert trim("   ") is None

    def test_none_returns_none(self):
        assert trim(None) is None


# ---------------------------------------------------------------------------
# normalize_space
# ---------------------------------------------------------------------------

class TestNormalizeSpace:
    def test_collapses_internal_spaces(self):
        assert normalize_space("hello   world") == "hello world"

    def test_collapses_tabs(self):
        assert normalize_space("hello\t\tworld") == "hello world"

    def test_none(self):
        assert normalize_space(None) is None


# ---------------------------------------------------------------------------
# Header helpers
# ---------------------------------------------------------------------------

class TestHeaders:
    def test_clean_header_strips_quotes_and_space(self):
        assert clean_header('  "Title" ') == "Title"

    def test_clean_header_removes_inner_quotes(self):
        assert clean_header('Say "Hi"') == "Say Hi"

    def test_match_key_lowercases(self):
        assert match_key("  Created At ") == "created at"

    def test_match_key_none(self):
        assert match_key(None) == ""


# ---------------------------------------------------------------------------
# slug_name
# ---------------------------------------------------------------------------

class TestSlugName:
    def test_basic(self):
        assert slug_name("Getting Started Guide") == "getting-started-guide"

    def test_accents_stripped(self):
        assert slug_name("Café Menü") == "cafe-menu"

    def test_punctuation_only_returns_none(self):
        assert slug_name("!!!") is None

    def test_none(self):
        assert slug_name(None) is None


# ---------------------------------------------------------------------------
# parse_number
# ---------------------------------------------------------------------------

class TestParseNumber:
    def test_integer(self):
        assert parse_number("30") == 30
        assert isinstance(parse_number("30"), int)

    def test_float(self):
        assert parse_number("3.5") == 3.5

    def test_negative(self):
        assert parse_number("-12") == -12

    def test_exponent(self):
        assert parse_number("1e3") == 1000

    def test_leading_dot(self):
        assert parse_number(".5") == 0.5

    def test_hex(self):
        assert parse_number("0x1F") == 31

    def test_infinity(self):
        assert parse_number("-Infinity") == -math.inf

    def test_python_only_spellings_rejected(self):
        assert parse_number("nan") is None
        assert parse_number("inf") is None

    def test_garbage(self):
        assert parse_number("abc") is None

    def test_empty(self):
        assert parse_number("  ") is None


# ---------------------------------------------------------------------------
# parse_bool
# ---------------------------------------------------------------------------

class TestParseBool:
    def test_true_tokens(self):
        for token in ("true", "TRUE", " 1 ", "yes", "Yes"):
            assert parse_bool(token) is True

    def test_other_values_false(self):
        for token in ("false", "0", "no", "y", "published"):
            assert parse_bool(token) is False

    def test_none_false(self):
        assert parse_bool(None) is False


# ---------------------------------------------------------------------------
# split_list
# ---------------------------------------------------------------------------

class TestSplitList:
    def test_splits_and_trims(self):
        assert split_list("a; b ;c") == ["a", "b", "c"]

    def test_drops_empty_elements(self):
        assert split_list("a;;b;") == ["a", "b"]

    def test_empty(self):
        assert split_list("") == []

    def test_custom_separator(self):
        assert split_list("a|b", sep="|") == ["a", "b"]


# ---------------------------------------------------------------------------
# parse_date
# ---------------------------------------------------------------------------

class TestParseDate:
    def test_iso_date(self):
        assert parse_date("2024-01-15") == date(2024, 1, 15)

    def test_iso_datetime_with_z(self):
        assert parse_date("2024-01-15T10:30:00Z") == date(2024, 1, 15)

    def test_offset_datetime_dated_in_utc(self):
        assert parse_date("2024-01-15T23:00:00-05:00") == date(2024, 1, 16)
        assert parse_date("2024-01-16T01:00:00+02:00") == date(2024, 1, 15)

    def test_naive_datetime_keeps_its_date(self):
        assert parse_date("2024-01-15T23:00:00") == date(2024, 1, 15)

    def test_us_format(self):
        assert parse_date("01/15/2024") == date(2024, 1, 15)

    def test_long_month(self):
        assert parse_date("January 15, 2024") == date(2024, 1, 15)

    def test_day_first_long(self):
        assert parse_date("15 Jan 2024") == date(2024, 1, 15)

    def test_invalid(self):
        assert parse_date("not a date") is None

    def test_none(self):
        assert parse_date(None) is None


class TestTodayIso:
    def test_uses_given_now(self):
        now = datetime(2024, 3, 9, 23, 59, tzinfo=timezone.utc)
        assert today_iso(now) == "2024-03-09"
