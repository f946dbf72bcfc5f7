"""Lifecycle of the long-running ``re_data`` report server.

The server is started after the first report run so it never serves an
empty report directory.  The supervisor then polls it at a fixed interval;
an exit of the server process is fatal for the container.  The loop stops
cleanly when the host sets the stop event (SIGTERM/SIGINT) or when an
optional deadline passes.  While supervising, output the scheduled report
job appends to its job log is echoed to stdout.

The scheduled report job and the server share the report directory with
no locking between them.
"""

from __future__ import annotations

import logging
import subprocess
import threading
import time
from collections.abc import Mapping
from typing import IO

from quality_core.config import RunConfiguration
from quality_core.errors import SupervisionError
from quality_core.executor.analysis_tool import ReDataClient
from quality_core.telemetry.logs import LogFollower

logger = logging.getLogger(__name__)

_TERMINATE_TIMEOUT = 10.0  # seconds


class ServerSupervisor:
    """Start the report server and watch it until shutdown.

    Parameters
    ----------
    config:
        The validated run configuration.
    env:
        Extra environment forwarded to the server process.
    client:
        ``re_data`` client; defaults to one bound to the project directory.
    job_output:
        Stream receiving the scheduled job log while supervising; defaults
        to stdout.
    """

    def __init__(
        self,
        config: RunConfiguration,
        env: Mapping[str, str] | None = None,
        *,
        client: ReDataClient | None = None,
        job_output: IO[str] | None = None,
    ) -> None:
        self._config = config
        self._client = client or ReDataClient(
            config.project_dir,
            executable=config.tools.re_data,
            env={**config.base_environment(), **dict(env or {})},
        )
        self._process: subprocess.Popen[str] | None = None
        self._output: IO[str] | None = None
        self._job_follower = LogFollower(config.paths.logs.job_log, job_output)

    @property
    def process(self) -> subprocess.Popen[str] | None:
        return self._process

    def _fail(self, returncode: int | None) -> SupervisionError:
        log = self._config.paths.logs.server_log
        return SupervisionError(
            f"re_data server exited unexpectedly (exit code {returncode}). Check {log} for details."
        )

    def start(self, stop_event: threading.Event | None = None) -> subprocess.Popen[str]:
        """Spawn the server and wait out the startup grace period.

        Raises
        ------
        SupervisionError
            If the server cannot be spawned or exits during the grace period.
        """
        server = self._config.server
        log_path = self._config.paths.logs.server_log
        log_path.parent.mkdir(parents=True, exist_ok=True)
        self._output = log_path.open("a", encoding="utf-8")

        logger.info("Starting re_data server on port %d", server.port)
        try:
            self._process = self._client.spawn_server(server.port, self._output)
        except OSError as exc:
            self._close_output()
            raise SupervisionError(f"Failed to start re_data server: {exc}") from exc

        (stop_event or threading.Event()).wait(server.grace_seconds)

        returncode = self._process.poll()
        if returncode is not None:
            self._close_output()
            raise self._fail(returncode)
        logger.info("re_data server started successfully (pid %d)", self._process.pid)
        self._job_follower.skip_existing()
        return self._process

    def supervise(self, stop_event: threading.Event, deadline: float | None = None) -> int:
        """Poll the server until it exits, *stop_event* is set, or *deadline* passes.

        *deadline* is a :func:`time.monotonic` timestamp.  Returns 0 after a
        requested stop.

        Raises
        ------
        SupervisionError
            If the server process exits on its own.
        """
        if self._process is None:
            raise SupervisionError("re_data server has not been started")

        interval = self._config.server.poll_interval
        logger.info("Supervising re_data server (poll interval %.0fs)", interval)
        while True:
            self._job_follower.pump()
            returncode = self._process.poll()
            if returncode is not None:
                self._close_output()
                raise self._fail(returncode)

            wait = interval
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.info("Supervision deadline reached")
                    break
                wait = min(wait, remaining)
            if stop_event.wait(wait):
                logger.info("Shutdown requested")
                break

        self.stop()
        return 0

    def stop(self) -> None:
        """Terminate the server if it is still running."""
        proc = self._process
        if proc is not None and proc.poll() is None:
            logger.info("Stopping re_data server")
            proc.terminate()
            try:
                proc.wait(timeout=_TERMINATE_TIMEOUT)
            except subprocess.TimeoutExpired:
                logger.warning("re_data server did not exit; killing it")
                proc.kill()
                proc.wait()
        self._close_output()

    def _close_output(self) -> None:
        if self._output is not None:
            self._output.close()
            self._output = None
