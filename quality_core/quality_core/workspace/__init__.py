"""dbt project working copy management."""

from __future__ import annotations

from quality_core.workspace.bootstrapper import TARGET_PATH_LINE, WorkspaceBootstrapper

__all__ = ["TARGET_PATH_LINE", "WorkspaceBootstrapper"]
