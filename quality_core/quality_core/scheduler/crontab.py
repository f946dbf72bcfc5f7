"""Declarative cron trigger installation.

Triggers are reconciled rather than appended: the desired trigger set is
computed, every existing crontab line carrying a trigger's marker is dropped,
the desired lines are appended, and the table is rewritten only when the
result differs from what is installed.  Repeated container restarts
therefore never accumulate duplicate entries.

Cron jobs do not inherit the container environment, so the report trigger
sources a generated env file (``export KEY='value'`` lines, mode 0600)
before running ``quality-core report``.
"""

from __future__ import annotations

import logging
import shlex
from collections.abc import Mapping, Sequence

from pydantic import SecretStr

from quality_core.config import HEALTH_CHECK_CRON_TIME, RunConfiguration
from quality_core.credentials.materializer import CredentialWriter, PendingFile
from quality_core.errors import ExternalToolError
from quality_core.executor.command import run_command
from quality_core.models.trigger import ScheduledTrigger

logger = logging.getLogger(__name__)

REPORT_TRIGGER = "report"
HEALTH_TRIGGER = "health"


# ---------------------------------------------------------------------------
# Desired state
# ---------------------------------------------------------------------------


def render_cron_env(environment: Mapping[str, str]) -> str:
    """Render *environment* as a POSIX-shell sourceable file."""
    lines = ["# Environment variables for cron jobs"]
    for name in sorted(environment):
        lines.append(f"export {name}={shlex.quote(environment[name])}")
    return "\n".join(lines) + "\n"


def write_cron_env(config: RunConfiguration, environment: Mapping[str, str]) -> None:
    """Write the cron env file with owner-only permissions.

    Raises
    ------
    CredentialAccessError
        If the file cannot be written; it holds forwarded passwords.
    """
    path = config.paths.cron_env_file
    CredentialWriter().write(PendingFile(path, SecretStr(render_cron_env(environment))))
    logger.info("Environment variables written to cron file %s", path)


def build_triggers(config: RunConfiguration) -> list[ScheduledTrigger]:
    """Return the report trigger and the liveness-probe trigger."""
    paths = config.paths
    executable = shlex.quote(config.tools.quality_core)
    report_cmd = " ".join(
        [
            ".",
            shlex.quote(str(paths.cron_env_file)),
            "&&",
            executable,
            "report",
            "--env-file",
            shlex.quote(str(paths.env_file)),
            ">>",
            shlex.quote(str(paths.logs.job_log)),
            "2>&1",
        ]
    )
    health_log = shlex.quote(str(paths.logs.health_log))
    health_cmd = f'echo "Cron health check: $(date)" >> {health_log} 2>&1'
    return [
        ScheduledTrigger(
            name=REPORT_TRIGGER,
            schedule=config.schedule,
            command=report_cmd,
            marker=f"{executable} report",
        ),
        ScheduledTrigger(
            name=HEALTH_TRIGGER,
            schedule=HEALTH_CHECK_CRON_TIME,
            command=health_cmd,
            marker=paths.logs.health_log.name,
        ),
    ]


def plan_crontab(current: Sequence[str], triggers: Sequence[ScheduledTrigger]) -> list[str]:
    """Compute the crontab lines after installing *triggers*.

    Unrelated lines are kept in their original order; any line containing a
    trigger's marker is replaced by that trigger's single desired line.
    """
    markers = [t.marker for t in triggers]
    kept = [line for line in current if line.strip() and not any(m in line for m in markers)]
    return kept + [t.line() for t in triggers]


# ---------------------------------------------------------------------------
# Crontab access
# ---------------------------------------------------------------------------


class CrontabClient:
    """Read and replace the current user's crontab via the ``crontab`` binary."""

    def __init__(self, executable: str = "crontab", restart_command: Sequence[str] = ("/etc/init.d/cron", "restart")) -> None:
        self._executable = executable
        self._restart_command = list(restart_command)

    def read(self) -> list[str]:
        """Return the installed crontab lines (empty when no crontab exists)."""
        try:
            result = run_command([self._executable, "-l"], description="crontab -l", timeout=30)
        except ExternalToolError as exc:
            # ``crontab -l`` exits 1 with "no crontab for <user>" on a fresh host.
            if exc.returncode == 1 and "no crontab" in exc.output_tail.lower():
                return []
            raise
        return result.stdout.splitlines()

    def write(self, lines: Sequence[str]) -> None:
        run_command(
            [self._executable, "-"],
            input_text="\n".join(lines) + "\n",
            description="crontab update",
            timeout=30,
        )

    def restart(self) -> None:
        logger.info("Restarting cron service")
        run_command(self._restart_command, description="cron restart", timeout=60)
        logger.info("Cron service restarted successfully")


class TriggerInstaller:
    """Reconcile the crontab against the desired trigger set."""

    def __init__(self, client: CrontabClient) -> None:
        self._client = client

    def install(self, triggers: Sequence[ScheduledTrigger], *, restart: bool = True) -> list[str]:
        """Install *triggers* idempotently and return the resulting crontab.

        Raises
        ------
        ExternalToolError
            If the crontab cannot be read or written, or cron cannot restart.
        """
        current = self._client.read()
        desired = plan_crontab(current, triggers)
        if desired == [line for line in current if line.strip()]:
            logger.info("Crontab already up to date (%d entries)", len(desired))
        else:
            self._client.write(desired)
            for trigger in triggers:
                logger.info("Scheduled %s trigger: %s", trigger.name, trigger.schedule)
        if restart:
            self._client.restart()
        return desired
