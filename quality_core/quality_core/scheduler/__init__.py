"""Periodic trigger registration in the host cron facility."""

from __future__ import annotations

from quality_core.scheduler.crontab import (
    HEALTH_TRIGGER,
    REPORT_TRIGGER,
    CrontabClient,
    TriggerInstaller,
    build_triggers,
    plan_crontab,
    render_cron_env,
    write_cron_env,
)

__all__ = [
    "HEALTH_TRIGGER",
    "REPORT_TRIGGER",
    "CrontabClient",
    "TriggerInstaller",
    "build_triggers",
    "plan_crontab",
    "render_cron_env",
    "write_cron_env",
]
