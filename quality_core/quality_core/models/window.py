"""Report and backfill time windows."""

from __future__ import annotations

from datetime import date
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Granularity passed to ``re_data overview generate --interval``.
DAILY_INTERVAL = "days:1"


class WindowKind(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class NotifyChannel(str, Enum):
    SLACK = "slack"
    EMAIL = "email"


class ReportWindow(BaseModel):
    """Inclusive start/end date pair for one report generation."""

    model_config = ConfigDict(frozen=True)

    kind: WindowKind
    start: date
    end: date
    interval: str = DAILY_INTERVAL

    @model_validator(mode="after")
    def _ordered(self) -> ReportWindow:
        if self.end < self.start:
            raise ValueError(f"Report window end {self.end} precedes start {self.start}")
        return self


class DateSpan(BaseModel):
    """Plain ``[start, end]`` date pair used for notification lookbacks."""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date


class BackfillRange(BaseModel):
    """Inclusive operator-supplied day range for a backfill."""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @model_validator(mode="after")
    def _ordered(self) -> BackfillRange:
        if self.end < self.start:
            raise ValueError(f"Backfill end date {self.end} precedes start date {self.start}")
        return self

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


class BackfillDay(BaseModel):
    """One iteration of a backfill: a midnight-to-midnight sub-window."""

    model_config = ConfigDict(frozen=True)

    day: date
    window_start: str = Field(description="Inclusive bound, ``YYYY-MM-DD 00:00:00``.")
    window_end: str = Field(description="Exclusive bound, the following midnight.")
