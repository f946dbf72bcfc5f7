"""Thin wrapper around the ``dbt`` command line."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path

from quality_core.executor.command import CommandResult, run_command

logger = logging.getLogger(__name__)


class DbtClient:
    """Invoke ``dbt`` sub-commands against one project directory.

    Parameters
    ----------
    project_dir:
        The dbt project (directory containing ``dbt_project.yml``).
    profiles_dir:
        Directory holding ``profiles.yml``; ``None`` lets dbt use its default
        (``~/.dbt``).
    executable:
        Name or path of the dbt binary.
    env:
        Extra environment assignments (credential variables).
    log_path:
        File that receives the command output.
    timeout:
        Per-invocation timeout in seconds.
    """

    def __init__(
        self,
        project_dir: Path,
        *,
        profiles_dir: Path | None = None,
        executable: str = "dbt",
        env: Mapping[str, str] | None = None,
        log_path: Path | None = None,
        timeout: float | None = None,
    ) -> None:
        self._project_dir = project_dir
        self._profiles_dir = profiles_dir
        self._executable = executable
        self._env = dict(env or {})
        self._log_path = log_path
        self._timeout = timeout

    def _dir_args(self) -> list[str]:
        args: list[str] = []
        if self._profiles_dir is not None:
            args += ["--profiles-dir", f"{self._profiles_dir}/"]
        args += ["--project-dir", f"{self._project_dir}/"]
        return args

    def _run(self, subcommand: list[str], description: str) -> CommandResult:
        return run_command(
            [self._executable, *subcommand, *self._dir_args()],
            cwd=self._project_dir,
            env=self._env,
            log_path=self._log_path,
            timeout=self._timeout,
            description=description,
        )

    def debug(self) -> CommandResult:
        logger.info("Running dbt debug")
        return self._run(["debug"], "dbt debug")

    def deps(self) -> CommandResult:
        logger.info("Updating dbt packages")
        return self._run(["deps"], "dbt deps")

    def run(self, select: str, variables: Mapping[str, str] | None = None) -> CommandResult:
        """Run the models matched by *select*, injecting *variables* as ``--vars``."""
        subcommand = ["run", "--select", select]
        if variables:
            subcommand += ["--vars", json.dumps(dict(variables))]
        return self._run(subcommand, f"dbt run {select}")
