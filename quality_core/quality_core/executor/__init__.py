"""External tool invocation for the orchestration workflow."""

from __future__ import annotations

from quality_core.executor.analysis_tool import ReDataClient
from quality_core.executor.command import (
    CommandResult,
    build_env,
    check_dependencies,
    format_command,
    run_command,
)
from quality_core.executor.transform_tool import DbtClient

__all__ = [
    "CommandResult",
    "DbtClient",
    "ReDataClient",
    "build_env",
    "check_dependencies",
    "format_command",
    "run_command",
]
