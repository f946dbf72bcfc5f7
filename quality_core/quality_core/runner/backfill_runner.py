"""Historical backfill of the ``re_data`` models, one day at a time.

The backfill is a non-resumable batch: every day in the inclusive range is
run in order, and the first failing day aborts the whole backfill.  Days
already completed are not recorded; re-running a range repeats them.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from quality_core.config import BACKFILL_THREADS, RunConfiguration
from quality_core.credentials.provisioner import CredentialProvisioner
from quality_core.errors import ConfigurationError
from quality_core.executor.transform_tool import DbtClient
from quality_core.models.window import BackfillDay, BackfillRange
from quality_core.planner.backfill_range import iter_backfill_days
from quality_core.workspace.bootstrapper import WorkspaceBootstrapper

logger = logging.getLogger(__name__)

RE_DATA_SELECTOR = "package:re_data"
WINDOW_START_VAR = "re_data:time_window_start"
WINDOW_END_VAR = "re_data:time_window_end"

_THREADS_RE = re.compile(r"^(?P<indent>[ \t]*threads[ \t]*:[ \t]*)\d+(?P<tail>[ \t]*(?:#.*)?)$", re.MULTILINE)


def set_profile_threads(profiles_path: Path, threads: int = BACKFILL_THREADS) -> int:
    """Rewrite every ``threads:`` value in *profiles_path* to *threads*.

    Returns the number of ``threads:`` entries found.

    Raises
    ------
    ConfigurationError
        If the profiles file does not exist or cannot be rewritten.
    """
    if not profiles_path.is_file():
        raise ConfigurationError(f"dbt profiles file not found: {profiles_path}")
    try:
        content = profiles_path.read_text(encoding="utf-8")
        updated, count = _THREADS_RE.subn(lambda m: f"{m.group('indent')}{threads}{m.group('tail')}", content)
        if updated != content:
            profiles_path.write_text(updated, encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigurationError(f"Cannot update dbt profiles file {profiles_path}: {exc}") from exc
    logger.info("Set thread count to %d for %d profile target(s)", threads, count)
    return count


@dataclass(frozen=True)
class BackfillResult:
    days: tuple[BackfillDay, ...]


class BackfillRunner:
    """Replay the ``re_data`` models once per day across a date range.

    Parameters
    ----------
    config:
        The validated run configuration.
    backfill_range:
        Inclusive day range to replay.
    provisioner:
        Credential provisioner; defaults to one built from *config*.
    env:
        Extra environment forwarded to ``dbt`` on top of the provisioned
        credentials.
    """

    def __init__(
        self,
        config: RunConfiguration,
        backfill_range: BackfillRange,
        *,
        provisioner: CredentialProvisioner | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._config = config
        self._range = backfill_range
        self._provisioner = provisioner or CredentialProvisioner(config)
        self._env = dict(env or {})

    def _dbt(self, env: Mapping[str, str]) -> DbtClient:
        return DbtClient(
            self._config.project_dir,
            profiles_dir=self._config.paths.dbt_profiles_path.parent,
            executable=self._config.tools.dbt,
            env={**self._config.base_environment(), **env},
            log_path=self._config.paths.logs.job_log,
            timeout=self._config.tools.timeout_seconds,
        )

    def prepare(self) -> dict[str, str]:
        """Clone the project, provision credentials and tune the profile.

        Returns the environment to forward to every ``dbt`` invocation.
        """
        workspace = WorkspaceBootstrapper(self._config, self._env)
        workspace.prepare_data_dir()
        logger.info("Cloning dbt repository")
        workspace.clone()

        result = self._provisioner.provision()
        env = {**self._env, **result.environment}

        set_profile_threads(self._config.paths.dbt_profiles_path, BACKFILL_THREADS)

        if self._config.backfill_deps:
            dbt = self._dbt(env)
            logger.info("dbt debug enabled")
            dbt.debug()
            dbt.deps()
        return env

    def run(self) -> BackfillResult:
        """Run the backfill.

        Raises
        ------
        ExternalToolError
            On the first failing ``dbt run``; later days are not attempted.
        """
        env = self.prepare()
        dbt = self._dbt(env)

        logger.info(
            "Backfilling %d day(s) from %s to %s",
            self._range.days,
            self._range.start,
            self._range.end,
        )
        completed: list[BackfillDay] = []
        for day in iter_backfill_days(self._range):
            logger.info("Running re_data models for %s", day.day)
            dbt.run(
                RE_DATA_SELECTOR,
                {WINDOW_START_VAR: day.window_start, WINDOW_END_VAR: day.window_end},
            )
            completed.append(day)

        logger.info("Backfill completed: %d day(s)", len(completed))
        return BackfillResult(days=tuple(completed))
