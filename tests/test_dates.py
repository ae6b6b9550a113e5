"""Tests for src.core.dates — calendar-day keys."""

from datetime import date, datetime

import pytest

from src.core.dates import format_date_key, month_bounds, parse_date
from src.core.errors import ValidationError


class TestParseDate:
    def test_plain_key(self):
        assert parse_date("2024-06-01") == date(2024, 6, 1)

    def test_datetime_truncated_to_day(self):
        assert parse_date("2024-06-01T23:59:00") == date(2024, 6, 1)

    def test_surrounding_whitespace(self):
        assert parse_date(" 2024-06-01 ") == date(2024, 6, 1)

    def test_date_objects_pass_through(self):
        assert parse_date(date(2024, 6, 1)) == date(2024, 6, 1)
        assert parse_date(datetime(2024, 6, 1, 15, 30)) == date(2024, 6, 1)

    @pytest.mark.parametrize("bad", ["", "   ", "2024-13-01", "2024-02-30", "tomorrow", None])
    def test_malformed(self, bad):
        with pytest.raises(ValidationError):
            parse_date(bad)


def test_format_date_key():
    assert format_date_key(date(2024, 6, 1)) == "2024-06-01"


class TestMonthBounds:
    def test_regular_month(self):
        assert month_bounds(2024, 6) == (date(2024, 6, 1), date(2024, 7, 1))

    def test_december_rolls_over(self):
        assert month_bounds(2024, 12) == (date(2024, 12, 1), date(2025, 1, 1))

    def test_leap_february(self):
        assert month_bounds(2024, 2) == (date(2024, 2, 1), date(2024, 3, 1))

    def test_invalid_month(self):
        with pytest.raises(ValidationError):
            month_bounds(2024, 13)
