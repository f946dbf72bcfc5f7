"""Date-window planning for report runs and backfills."""

from quality_core.planner.backfill_range import day_window, iter_backfill_days, parse_backfill_range
from quality_core.planner.report_window import compute_report_window, notification_window, quarter_bounds

__all__ = [
    "compute_report_window",
    "day_window",
    "iter_backfill_days",
    "notification_window",
    "parse_backfill_range",
    "quarter_bounds",
]
