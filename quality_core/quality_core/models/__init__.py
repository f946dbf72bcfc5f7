"""Domain models for the data-quality orchestration engine."""

from quality_core.models.trigger import ScheduledTrigger, validate_cron_expression
from quality_core.models.warehouse import CredentialBundle, CredentialSource, WarehouseKind
from quality_core.models.window import (
    DAILY_INTERVAL,
    BackfillDay,
    BackfillRange,
    DateSpan,
    NotifyChannel,
    ReportWindow,
    WindowKind,
)

__all__ = [
    "DAILY_INTERVAL",
    "BackfillDay",
    "BackfillRange",
    "CredentialBundle",
    "CredentialSource",
    "DateSpan",
    "NotifyChannel",
    "ReportWindow",
    "ScheduledTrigger",
    "WarehouseKind",
    "WindowKind",
    "validate_cron_expression",
]
