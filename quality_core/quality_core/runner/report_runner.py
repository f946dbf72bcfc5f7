"""Scheduled report generation.

One run refreshes the working copy, repairs and prepares the dbt project,
regenerates the ``re_data`` overview for the configured window, and sends
the enabled notifications.  Every external invocation raises on failure,
so the first failing step aborts the run.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import date

from quality_core.config import RunConfiguration
from quality_core.executor.analysis_tool import ReDataClient
from quality_core.models.window import NotifyChannel, ReportWindow
from quality_core.planner.report_window import compute_report_window, notification_window
from quality_core.workspace.bootstrapper import WorkspaceBootstrapper

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReportRunResult:
    """Window that was generated and the channels that were notified."""

    window: ReportWindow
    notified: tuple[NotifyChannel, ...] = field(default_factory=tuple)


class ReportRunner:
    """Regenerate the data-quality report for the current window.

    Parameters
    ----------
    config:
        The validated run configuration.
    env:
        Extra environment forwarded to ``dbt`` and ``re_data`` (credential
        variables accumulated by the provisioner).
    clock:
        Returns the reference date; defaults to :meth:`date.today`.
    """

    def __init__(
        self,
        config: RunConfiguration,
        env: Mapping[str, str] | None = None,
        *,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self._config = config
        self._env = dict(env or {})
        self._clock = clock
        self._workspace = WorkspaceBootstrapper(config, self._env)

    def _re_data(self) -> ReDataClient:
        return ReDataClient(
            self._config.project_dir,
            profiles_dir=self._config.project_dir,
            executable=self._config.tools.re_data,
            env={**self._config.base_environment(), **self._env},
            log_path=self._config.paths.logs.server_log,
            timeout=self._config.tools.timeout_seconds,
        )

    def enabled_channels(self) -> list[NotifyChannel]:
        channels: list[NotifyChannel] = []
        if self._config.notify_slack:
            channels.append(NotifyChannel.SLACK)
        if self._config.notify_email:
            channels.append(NotifyChannel.EMAIL)
        return channels

    def prepare(self) -> None:
        """Bring the dbt project up to date and install its packages."""
        logger.info("Starting dbt workload reload")
        self._workspace.sync()
        self._workspace.ensure_target_path()
        logger.info("Updating dbt packages")
        self._workspace.refresh_dependencies()

    def run(self, today: date | None = None) -> ReportRunResult:
        """Execute one report run.

        Raises
        ------
        ExternalToolError
            If git, ``dbt deps``, report generation, or any notification
            fails.
        ConfigurationError
            If the cloned repository lacks the configured project.
        """
        reference = today or self._clock()
        window = compute_report_window(self._config.window_kind, reference)

        self.prepare()

        client = self._re_data()
        logger.info(
            "Generating %s re_data report from %s to %s",
            window.kind.value,
            window.start,
            window.end,
        )
        client.generate(window.start, window.end, window.interval)

        notified: list[NotifyChannel] = []
        for channel in self.enabled_channels():
            span = notification_window(channel, reference)
            logger.info("Sending %s notification for %s to %s", channel.value, span.start, span.end)
            client.notify(channel, span.start, span.end)
            notified.append(channel)

        logger.info("re_data report generation completed")
        return ReportRunResult(window=window, notified=tuple(notified))
