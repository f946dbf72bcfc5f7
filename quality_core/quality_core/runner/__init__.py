"""Report generation and historical backfill workflows."""

from quality_core.runner.backfill_runner import BackfillResult, BackfillRunner, set_profile_threads
from quality_core.runner.report_runner import ReportRunner, ReportRunResult

__all__ = [
    "BackfillResult",
    "BackfillRunner",
    "ReportRunResult",
    "ReportRunner",
    "set_profile_threads",
]
