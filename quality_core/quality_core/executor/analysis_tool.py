"""Thin wrapper around the ``re_data`` command line.

``re_data`` computes the data-quality signals, renders the overview report
into the dbt project's target directory, sends notifications, and serves
the report UI.  This module only builds and runs its command lines.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Mapping
from datetime import date
from pathlib import Path
from typing import IO

from quality_core.executor.command import CommandResult, build_env, format_command, run_command
from quality_core.models.window import DAILY_INTERVAL, NotifyChannel

logger = logging.getLogger(__name__)


class ReDataClient:
    """Invoke ``re_data`` operations for one dbt project."""

    def __init__(
        self,
        project_dir: Path,
        *,
        profiles_dir: Path | None = None,
        executable: str = "re_data",
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

    def generate(self, start: date, end: date, interval: str = DAILY_INTERVAL) -> CommandResult:
        """Regenerate the overview report for ``[start, end]``."""
        cmd = [
            self._executable,
            "overview",
            "generate",
            "--start-date",
            start.isoformat(),
            "--end-date",
            end.isoformat(),
            "--interval",
            interval,
            *self._dir_args(),
        ]
        return run_command(
            cmd,
            cwd=self._project_dir,
            env=self._env,
            log_path=self._log_path,
            timeout=self._timeout,
            description="re_data overview generate",
        )

    def notify(self, channel: NotifyChannel, start: date, end: date) -> CommandResult:
        """Send the *channel* notification covering ``[start, end]``."""
        cmd = [
            self._executable,
            "notify",
            channel.value,
            "--start-date",
            start.isoformat(),
            "--end-date",
            end.isoformat(),
            *self._dir_args(),
        ]
        return run_command(
            cmd,
            cwd=self._project_dir,
            env=self._env,
            log_path=self._log_path,
            timeout=self._timeout,
            description=f"re_data notify {channel.value}",
        )

    def serve_command(self, port: int) -> list[str]:
        return [
            self._executable,
            "overview",
            "serve",
            "--port",
            str(port),
            "--project-dir",
            f"{self._project_dir}/",
        ]

    def spawn_server(self, port: int, output: IO[str]) -> subprocess.Popen[str]:
        """Start the report server in the background, writing its output to *output*."""
        cmd = self.serve_command(port)
        logger.info("Starting report server: %s", format_command(cmd))
        return subprocess.Popen(  # noqa: S603
            cmd,
            cwd=self._project_dir,
            env=build_env(self._env),
            stdout=output,
            stderr=subprocess.STDOUT,
            text=True,
        )
