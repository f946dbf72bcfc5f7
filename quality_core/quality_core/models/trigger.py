"""Cron trigger registrations."""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Each of the five cron fields: digits, ranges, lists, steps, wildcards, names.
_CRON_FIELD_RE = re.compile(r"^[0-9A-Za-z*/,\-]+$")


def validate_cron_expression(expression: str) -> str:
    """Return the normalised five-field cron *expression*.

    Raises
    ------
    ValueError
        If the expression does not have exactly five well-formed fields.
    """
    fields = expression.split()
    if len(fields) != 5:
        raise ValueError(f"Cron expression must have 5 fields, got {len(fields)}: {expression!r}")
    for field in fields:
        if not _CRON_FIELD_RE.match(field):
            raise ValueError(f"Invalid cron field {field!r} in {expression!r}")
    return " ".join(fields)


class ScheduledTrigger(BaseModel):
    """A periodic job registration in the crontab.

    ``marker`` is the substring that identifies this trigger's line in an
    existing crontab (the target script or log file); any line containing
    it is replaced when the trigger is installed.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    schedule: str
    command: str
    marker: str = Field(min_length=1)

    @field_validator("schedule")
    @classmethod
    def _valid_schedule(cls, v: str) -> str:
        return validate_cron_expression(v)

    def line(self) -> str:
        """Render the crontab line for this trigger."""
        return f"{self.schedule} {self.command}"
