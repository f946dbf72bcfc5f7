"""Container startup pipeline.

Runs every one-time stage in order and then blocks supervising the report
server::

    dependencies -> data dir -> clone -> credentials -> [dbt debug]
      -> env files -> cron triggers -> first report run -> report server

The first report run completes (or fails) before the server starts, so the
server never serves a report directory that was never populated.  Any
failure propagates and ends the process with the error's exit code.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from pydantic import SecretStr

from quality_core.config import RunConfiguration, Settings, render_env_file
from quality_core.credentials.materializer import CredentialWriter, PendingFile
from quality_core.credentials.provisioner import CredentialProvisioner
from quality_core.executor.command import check_dependencies
from quality_core.models.warehouse import CredentialSource
from quality_core.runner.report_runner import ReportRunner
from quality_core.scheduler.crontab import CrontabClient, TriggerInstaller, build_triggers, write_cron_env
from quality_core.supervisor.server import ServerSupervisor
from quality_core.telemetry.logs import job_log
from quality_core.workspace.bootstrapper import WorkspaceBootstrapper

logger = logging.getLogger(__name__)


def required_tools(config: RunConfiguration) -> list[str]:
    """Executables the startup pipeline needs on PATH."""
    tools = [config.tools.git, config.tools.dbt, config.tools.re_data, "crontab"]
    uses_secret_manager = (
        config.credential_source is not CredentialSource.MANUAL or config.environment_secret_name is not None
    )
    if uses_secret_manager:
        tools.append(config.tools.gcloud)
    return tools


def persist_environment(settings: Settings, config: RunConfiguration, environment: dict[str, str]) -> None:
    """Write the settings env file and the cron env file (both mode 0600)."""
    writer = CredentialWriter()
    writer.write(PendingFile(config.paths.env_file, SecretStr(render_env_file(settings))))
    write_cron_env(config, {**config.base_environment(), **environment})


@dataclass
class StartupPipeline:
    """Wire the startup stages together.

    Every collaborator can be replaced, which is how the tests drive the
    pipeline without external tools.
    """

    settings: Settings
    config: RunConfiguration
    provisioner: CredentialProvisioner | None = None
    installer: TriggerInstaller | None = None
    supervisor: ServerSupervisor | None = None

    def run(self, stop_event: threading.Event | None = None, deadline: float | None = None) -> int:
        """Execute the startup sequence and supervise the server.

        Returns 0 when supervision is stopped through *stop_event* or
        *deadline*.

        Raises
        ------
        QualityCoreError
            Whatever the first failing stage raised.
        """
        config = self.config
        stop = stop_event or threading.Event()

        logger.info("Starting data-quality workload")
        config.paths.logs.ensure()
        check_dependencies(required_tools(config))

        workspace = WorkspaceBootstrapper(config)
        workspace.prepare_data_dir()
        logger.info("Cloning dbt repository")
        workspace.clone()

        provisioner = self.provisioner or CredentialProvisioner(config)
        environment = provisioner.provision().environment

        if config.debug:
            logger.info("dbt debug enabled")
            WorkspaceBootstrapper(config, environment).debug()

        persist_environment(self.settings, config, environment)

        installer = self.installer or TriggerInstaller(CrontabClient(restart_command=config.tools.cron_restart))
        installer.install(build_triggers(config))

        logger.info("Running initial re_data report")
        with job_log(config.paths.logs.job_log, structured=config.structured_logging):
            ReportRunner(config, environment).run()

        supervisor = self.supervisor or ServerSupervisor(config, environment)
        supervisor.start(stop)
        return supervisor.supervise(stop, deadline=deadline)


def run_startup(
    settings: Settings,
    config: RunConfiguration,
    *,
    stop_event: threading.Event | None = None,
    deadline: float | None = None,
) -> int:
    """Run the container startup pipeline with its default collaborators."""
    return StartupPipeline(settings, config).run(stop_event, deadline)
