"""
Unit tests for the duration formatting and parsing helpers.
"""

import pytest
from datetime import datetime, timedelta, timezone
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent))

from timetrack.utils.time import (
    align_timezones,
    elapsed_seconds,
    format_duration,
    format_duration_compact,
    format_time_for_context,
    format_timer_display,
    get_date_ranges,
    get_time_ago,
    is_valid_time_input,
    parse_time_input,
)


class TestFormatting:

    @pytest.mark.parametrize("seconds,expected", [
        (0, "0s"),
        (3, "3s"),
        (303, "5m 3s"),
        (3903, "1h 5m 3s"),
        (-1, "0s"),
    ])
    def test_format_duration(self, seconds, expected):
        assert format_duration(seconds) == expected

    @pytest.mark.parametrize("seconds,expected", [
        (30, "< 1m"),
        (2700, "45m"),
        (7200, "2h"),
        (9000, "2h 30m"),
        (-5, "0m"),
    ])
    def test_format_duration_compact(self, seconds, expected):
        assert format_duration_compact(seconds) == expected

    def test_format_timer_display(self):
        assert format_timer_display(0) == "00:00:00"
        assert format_timer_display(3661) == "01:01:01"
        assert format_timer_display(-10) == "00:00:00"

    def test_format_time_for_context(self):
        assert format_time_for_context(3661, "short") == "01:01:01"
        assert format_time_for_context(3661, "long") == "1h 1m 1s"
        assert format_time_for_context(3661) == "1h 1m"


class TestParsing:

    @pytest.mark.parametrize("text,expected", [
        ("2h 30m", 9000),
        ("90m", 5400),
        ("1.5h", 5400),
        ("45s", 45),
        ("1h 1m 1s", 3661),
        ("45", 2700),
        ("  2H  ", 7200),
        ("abc", 0),
        ("", 0),
    ])
    def test_parse_time_input(self, text, expected):
        assert parse_time_input(text) == expected

    def test_parse_rounds_half_up(self):
        """0.5 seconds rounds up to 1."""
        assert parse_time_input("0.5s") == 1

    @pytest.mark.parametrize("text,valid", [
        ("2h 30m", True),
        ("45", True),
        ("1.5h", True),
        ("", False),
        ("   ", False),
        ("abc", False),
    ])
    def test_is_valid_time_input(self, text, valid):
        assert is_valid_time_input(text) is valid


class TestDates:

    def test_elapsed_seconds(self):
        start = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)
        end = datetime(2025, 1, 1, 10, 30, tzinfo=timezone.utc)
        assert elapsed_seconds(start, end) == 5400

    def test_date_ranges_week_starts_sunday(self):
        # Wednesday 15 January 2025
        now = datetime(2025, 1, 15, 14, 0)
        ranges = get_date_ranges(now)

        assert ranges["today"][0] == datetime(2025, 1, 15)
        assert ranges["yesterday"][0] == datetime(2025, 1, 14)
        assert ranges["this_week"][0] == datetime(2025, 1, 12)
        assert ranges["last_week"][0] == datetime(2025, 1, 5)
        assert ranges["last_week"][1].date() == datetime(2025, 1, 11).date()
        assert ranges["this_month"][0] == datetime(2025, 1, 1)
        assert ranges["last_month"][0] == datetime(2024, 12, 1)
        assert ranges["last_month"][1].date() == datetime(2024, 12, 31).date()

    def test_date_ranges_on_sunday(self):
        now = datetime(2025, 1, 12, 8, 0)
        assert get_date_ranges(now)["this_week"][0] == datetime(2025, 1, 12)

    @pytest.mark.parametrize("seconds_ago,expected", [
        (10, "just now"),
        (60, "1 minute ago"),
        (300, "5 minutes ago"),
        (7200, "2 hours ago"),
        (86400 + 60, "yesterday"),
        (3 * 86400, "3 days ago"),
    ])
    def test_get_time_ago(self, seconds_ago, expected):
        now = datetime(2025, 1, 15, 12, 0)
        moment = now - timedelta(seconds=seconds_ago)
        assert get_time_ago(moment, now) == expected

    def test_get_time_ago_old_dates_show_date(self):
        now = datetime(2025, 1, 15, 12, 0)
        assert get_time_ago(datetime(2024, 12, 1, 9, 0), now) == "2024-12-01"


class TestAlignTimezones:

    def test_naive_start_takes_zone_of_aware_end(self):
        start = datetime(2025, 1, 1, 9, 0)
        end = datetime(2025, 2, 1, 0, 0, tzinfo=timezone.utc)

        aligned_start, aligned_end = align_timezones(start, end)

        assert aligned_start == datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)
        assert aligned_end is end

    def test_naive_end_takes_zone_of_aware_start(self):
        plus_two = timezone(timedelta(hours=2))
        start = datetime(2025, 1, 1, 9, 0, tzinfo=plus_two)

        _, end = align_timezones(start, datetime(2025, 1, 1, 10, 0))

        assert end.tzinfo is plus_two
        assert end > start

    def test_matching_or_missing_values_unchanged(self):
        naive = datetime(2025, 1, 1)
        aware = datetime(2025, 1, 1, tzinfo=timezone.utc)

        assert align_timezones(naive, naive) == (naive, naive)
        assert align_timezones(aware, aware) == (aware, aware)
        assert align_timezones(None, aware) == (None, aware)
