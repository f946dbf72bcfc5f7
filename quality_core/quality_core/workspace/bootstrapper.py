"""Local working copy of the dbt project.

The startup sequence clones the project once; the scheduled report job
force-refreshes it (or clones it again if the copy disappeared).  Both
paths end with the same post-clone repair: ``re_data`` reads the compiled
manifest from ``target/``, so a project that does not declare a
``target-path`` gets one appended.
"""

from __future__ import annotations

import logging
import re
import shutil
from collections.abc import Mapping
from pathlib import Path

from quality_core.config import RunConfiguration
from quality_core.errors import ConfigurationError
from quality_core.executor.transform_tool import DbtClient
from quality_core.git import git_client

logger = logging.getLogger(__name__)

TARGET_PATH_LINE = 'target-path: "target"'
_TARGET_PATH_RE = re.compile(r"^target-path\s*:", re.MULTILINE)


class WorkspaceBootstrapper:
    """Clone, refresh, repair and prepare the dbt project for report runs."""

    def __init__(self, config: RunConfiguration, env: Mapping[str, str] | None = None) -> None:
        self._config = config
        self._env = dict(env or {})

    @property
    def project_dir(self) -> Path:
        return self._config.project_dir

    def dbt(self, profiles_dir: Path | None = None) -> DbtClient:
        """Return a dbt client for the project.

        The project directory doubles as the profiles directory unless
        *profiles_dir* is given.
        """
        return DbtClient(
            self._config.project_dir,
            profiles_dir=profiles_dir or self._config.project_dir,
            executable=self._config.tools.dbt,
            env={**self._config.base_environment(), **self._env},
            log_path=self._config.paths.logs.server_log,
            timeout=self._config.tools.timeout_seconds,
        )

    def prepare_data_dir(self) -> None:
        """Create the data directory and remove a stray ``lost+found`` entry."""
        data_dir = self._config.paths.data_dir
        data_dir.mkdir(parents=True, exist_ok=True)
        lost_found = data_dir / "lost+found"
        if lost_found.is_dir():
            logger.info("Removing lost+found directory")
            shutil.rmtree(lost_found)
        elif lost_found.exists():
            logger.info("Removing lost+found file")
            lost_found.unlink()

    def clone(self) -> None:
        """First-run clone; fails if the project subdirectory is missing afterwards."""
        git_client.clone(
            self._config.repo_url.get_secret_value(),
            self._config.paths.clone_dir,
            executable=self._config.tools.git,
            timeout=self._config.tools.git_timeout_seconds,
        )
        self._require_project_dir()

    def sync(self) -> None:
        """Refresh an existing working copy, or clone when it does not exist."""
        if self._config.project_dir.is_dir() and git_client.is_working_copy(self._config.project_dir):
            git_client.sync(
                self._config.project_dir,
                executable=self._config.tools.git,
                timeout=self._config.tools.git_timeout_seconds,
            )
        else:
            logger.info("Cloning new dbt repository")
            self.clone()
        self._require_project_dir()

    def _require_project_dir(self) -> None:
        if not self._config.project_dir.is_dir():
            raise ConfigurationError(
                f"dbt project directory {self._config.project_dir} not found in the cloned repository "
                f"(check DBT_REPO_NAME)"
            )

    def ensure_target_path(self) -> bool:
        """Append ``target-path`` to ``dbt_project.yml`` when it is missing.

        Returns True when the file was modified.
        """
        project_file = self._config.dbt_project_file
        if not project_file.is_file():
            raise ConfigurationError(f"dbt project file not found: {project_file}")
        try:
            content = project_file.read_text(encoding="utf-8")
            if _TARGET_PATH_RE.search(content):
                logger.info("target-path is already configured in dbt_project.yml")
                return False

            logger.info("Adding target-path configuration to dbt_project.yml")
            prefix = "" if not content or content.endswith("\n") else "\n"
            with project_file.open("a", encoding="utf-8") as fh:
                fh.write(f"{prefix}{TARGET_PATH_LINE}\n")
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigurationError(f"Cannot update dbt project file {project_file}: {exc}") from exc
        return True

    def refresh_dependencies(self) -> None:
        self.dbt().deps()

    def debug(self) -> None:
        """Run ``dbt debug`` against the provisioned profile in the dbt home directory."""
        self.dbt(self._config.paths.dbt_profiles_path.parent).debug()
