"""Day-by-day iteration over an inclusive backfill range."""

from __future__ import annotations

import re
from collections.abc import Iterator
from datetime import date, datetime, time, timedelta

from pydantic import ValidationError

from quality_core.errors import ConfigurationError
from quality_core.models.window import BackfillDay, BackfillRange

DATE_FORMAT = "%Y-%m-%d"
WINDOW_FORMAT = "%Y-%m-%d %H:%M:%S"

_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)


def _parse_date(value: str | None, label: str) -> date:
    if value is None or not value.strip():
        raise ConfigurationError(f"{label} must be set (YYYY-MM-DD)")
    text = value.strip()
    try:
        if not _DATE_RE.fullmatch(text):
            raise ValueError(text)
        return datetime.strptime(text, DATE_FORMAT).date()
    except ValueError as exc:
        raise ConfigurationError(f"Invalid {label} '{value}': expected YYYY-MM-DD") from exc


def parse_backfill_range(start: str | None, end: str | None) -> BackfillRange:
    """Parse the operator-supplied ISO dates into a :class:`BackfillRange`.

    Raises
    ------
    ConfigurationError
        If either date is missing or malformed, or *end* precedes *start*.
    """
    start_day = _parse_date(start, "BACKFILL_START_DATE")
    end_day = _parse_date(end, "BACKFILL_END_DATE")
    try:
        return BackfillRange(start=start_day, end=end_day)
    except ValidationError as exc:
        raise ConfigurationError(f"Backfill end date {end_day} precedes start date {start_day}") from exc


def day_window(day: date) -> BackfillDay:
    """Return the ``[day 00:00:00, day+1 00:00:00)`` sub-window for *day*."""
    start = datetime.combine(day, time.min)
    return BackfillDay(
        day=day,
        window_start=start.strftime(WINDOW_FORMAT),
        window_end=(start + timedelta(days=1)).strftime(WINDOW_FORMAT),
    )


def iter_backfill_days(backfill_range: BackfillRange) -> Iterator[BackfillDay]:
    """Yield one sub-window per calendar day, start to end inclusive."""
    cursor = backfill_range.start
    while cursor <= backfill_range.end:
        yield day_window(cursor)
        cursor += timedelta(days=1)
