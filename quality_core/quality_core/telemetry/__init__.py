"""Logging, structured output, and secret redaction."""

from __future__ import annotations

from quality_core.telemetry.json_formatter import JSONFormatter
from quality_core.telemetry.logs import LogFollower, LogPaths, configure_logging, job_log
from quality_core.telemetry.redaction import (
    MASK,
    SecretRedactionFilter,
    is_secret_name,
    log_env_var,
    redact,
    register_secret,
)

__all__ = [
    "JSONFormatter",
    "LogFollower",
    "LogPaths",
    "MASK",
    "SecretRedactionFilter",
    "configure_logging",
    "is_secret_name",
    "job_log",
    "log_env_var",
    "redact",
    "register_secret",
]
