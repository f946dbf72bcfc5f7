"""Report window arithmetic.

All functions take the reference date explicitly so the windows are
deterministic; callers pass ``date.today()`` at the edge.
"""

from __future__ import annotations

from datetime import date, timedelta

from quality_core.models.window import DateSpan, NotifyChannel, ReportWindow, WindowKind

# (first month, last month, last day) per calendar quarter.
_QUARTERS: tuple[tuple[int, int, int], ...] = (
    (1, 3, 31),
    (4, 6, 30),
    (7, 9, 30),
    (10, 12, 31),
)


def quarter_bounds(today: date) -> tuple[date, date]:
    """Return the first and last day of the calendar quarter containing *today*."""
    first_month, last_month, last_day = _QUARTERS[(today.month - 1) // 3]
    return date(today.year, first_month, 1), date(today.year, last_month, last_day)


def compute_report_window(kind: WindowKind, today: date) -> ReportWindow:
    """Compute the report window of *kind* relative to *today*.

    * yearly    -- January 1 of the current year through tomorrow
    * quarterly -- the whole current calendar quarter
    * monthly   -- the first of the current month through tomorrow
    """
    tomorrow = today + timedelta(days=1)
    if kind is WindowKind.YEARLY:
        return ReportWindow(kind=kind, start=date(today.year, 1, 1), end=tomorrow)
    if kind is WindowKind.QUARTERLY:
        start, end = quarter_bounds(today)
        return ReportWindow(kind=kind, start=start, end=end)
    return ReportWindow(kind=kind, start=today.replace(day=1), end=tomorrow)


def notification_window(channel: NotifyChannel, today: date) -> DateSpan:
    """Lookback window for a notification channel.

    Slack covers ``[today, tomorrow]``; email covers ``[yesterday, tomorrow]``.
    """
    tomorrow = today + timedelta(days=1)
    if channel is NotifyChannel.EMAIL:
        return DateSpan(start=today - timedelta(days=1), end=tomorrow)
    return DateSpan(start=today, end=tomorrow)
