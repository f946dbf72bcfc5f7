"""Unit tests for quality_core.planner.backfill_range."""

from __future__ import annotations

from datetime import date

import pytest

from quality_core.errors import ConfigurationError
from quality_core.planner.backfill_range import day_window, iter_backfill_days, parse_backfill_range


class TestParseBackfillRange:
    def test_valid_range(self):
        backfill_range = parse_backfill_range("2024-01-01", "2024-01-03")
        assert backfill_range.start == date(2024, 1, 1)
        assert backfill_range.end == date(2024, 1, 3)
        assert backfill_range.days == 3

    def test_single_day(self):
        assert parse_backfill_range("2024-02-29", "2024-02-29").days == 1

    def test_missing_start(self):
        with pytest.raises(ConfigurationError, match="BACKFILL_START_DATE must be set"):
            parse_backfill_range(None, "2024-01-03")

    def test_malformed_end(self):
        with pytest.raises(ConfigurationError, match="Invalid BACKFILL_END_DATE"):
            parse_backfill_range("2024-01-01", "03/01/2024")

    @pytest.mark.parametrize("value", ["20240101", "2024-W01-1", "2024-1-3", "2024-02-30"])
    def test_only_calendar_dates_in_dashed_form(self, value: str):
        with pytest.raises(ConfigurationError, match="expected YYYY-MM-DD"):
            parse_backfill_range(value, "2024-12-31")

    def test_end_before_start(self):
        with pytest.raises(ConfigurationError, match="precedes start date"):
            parse_backfill_range("2024-01-03", "2024-01-01")


class TestIterBackfillDays:
    def test_three_day_range(self):
        days = list(iter_backfill_days(parse_backfill_range("2024-01-01", "2024-01-03")))
        assert [(d.window_start, d.window_end) for d in days] == [
            ("2024-01-01 00:00:00", "2024-01-02 00:00:00"),
            ("2024-01-02 00:00:00", "2024-01-03 00:00:00"),
            ("2024-01-03 00:00:00", "2024-01-04 00:00:00"),
        ]

    def test_crosses_month_boundary(self):
        days = list(iter_backfill_days(parse_backfill_range("2024-02-28", "2024-03-01")))
        assert [d.day for d in days] == [date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)]

    def test_day_window(self):
        window = day_window(date(2023, 12, 31))
        assert window.window_start == "2023-12-31 00:00:00"
        assert window.window_end == "2024-01-01 00:00:00"
