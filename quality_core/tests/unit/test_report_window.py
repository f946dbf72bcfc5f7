"""Unit tests for quality_core.planner.report_window."""

from __future__ import annotations

from datetime import date

import pytest

from quality_core.models.window import DAILY_INTERVAL, NotifyChannel, WindowKind
from quality_core.planner.report_window import compute_report_window, notification_window, quarter_bounds

_TODAY = date(2024, 7, 15)


class TestComputeReportWindow:
    def test_monthly(self):
        window = compute_report_window(WindowKind.MONTHLY, _TODAY)
        assert (window.start, window.end) == (date(2024, 7, 1), date(2024, 7, 16))
        assert window.interval == DAILY_INTERVAL

    def test_quarterly(self):
        window = compute_report_window(WindowKind.QUARTERLY, _TODAY)
        assert (window.start, window.end) == (date(2024, 7, 1), date(2024, 9, 30))

    def test_yearly(self):
        window = compute_report_window(WindowKind.YEARLY, _TODAY)
        assert (window.start, window.end) == (date(2024, 1, 1), date(2024, 7, 16))

    def test_monthly_on_last_day_of_year(self):
        window = compute_report_window(WindowKind.MONTHLY, date(2024, 12, 31))
        assert (window.start, window.end) == (date(2024, 12, 1), date(2025, 1, 1))

    def test_yearly_on_first_day(self):
        window = compute_report_window(WindowKind.YEARLY, date(2025, 1, 1))
        assert (window.start, window.end) == (date(2025, 1, 1), date(2025, 1, 2))


class TestQuarterBounds:
    @pytest.mark.parametrize(
        ("today", "expected"),
        [
            (date(2024, 1, 1), (date(2024, 1, 1), date(2024, 3, 31))),
            (date(2024, 3, 31), (date(2024, 1, 1), date(2024, 3, 31))),
            (date(2024, 4, 1), (date(2024, 4, 1), date(2024, 6, 30))),
            (date(2024, 9, 30), (date(2024, 7, 1), date(2024, 9, 30))),
            (date(2024, 11, 5), (date(2024, 10, 1), date(2024, 12, 31))),
        ],
    )
    def test_calendar_quarters(self, today: date, expected: tuple[date, date]):
        assert quarter_bounds(today) == expected


class TestNotificationWindow:
    def test_email_looks_back_one_day(self):
        span = notification_window(NotifyChannel.EMAIL, _TODAY)
        assert (span.start, span.end) == (date(2024, 7, 14), date(2024, 7, 16))

    def test_slack_covers_today(self):
        span = notification_window(NotifyChannel.SLACK, _TODAY)
        assert (span.start, span.end) == (date(2024, 7, 15), date(2024, 7, 16))
