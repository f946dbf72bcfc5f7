"""Git integration for the dbt project working copy."""

from __future__ import annotations

from quality_core.git.git_client import (
    GitClientError,
    clone,
    is_working_copy,
    sync,
    validate_repo,
)

__all__ = [
    "GitClientError",
    "clone",
    "is_working_copy",
    "sync",
    "validate_repo",
]
