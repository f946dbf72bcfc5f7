"""Log file layout and handler configuration.

All operational logs live under a single directory with a fixed naming
convention so that operators (and the cron job, which runs in a separate
process) always know where to look:

=====================  ===================================================
``api-entrypoint.log``  main log of the startup sequence and supervisor
``error.log``           every ERROR record, from any process
``cron.log``            cron facility output
``redata.log``          report server / analysis tool output
``redata_job.log``      one section per report run
``cron_up.log``         liveness probe timestamps
=====================  ===================================================

Every record goes to *stderr* (for the container orchestrator) and to the
main log; ERROR records also go to the error log.  Every handler carries
the :class:`~quality_core.telemetry.redaction.SecretRedactionFilter`.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO

from pydantic import BaseModel, ConfigDict

from quality_core.telemetry.json_formatter import JSONFormatter
from quality_core.telemetry.redaction import SecretRedactionFilter

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Marks handlers installed by configure_logging so reconfiguration replaces them.
_HANDLER_TAG = "_quality_core_handler"


class LogPaths(BaseModel):
    """Absolute paths of every log file written by the engine."""

    model_config = ConfigDict(frozen=True)

    log_dir: Path
    main_log: Path
    error_log: Path
    cron_log: Path
    server_log: Path
    job_log: Path
    health_log: Path

    @classmethod
    def under(cls, log_dir: Path) -> LogPaths:
        return cls(
            log_dir=log_dir,
            main_log=log_dir / "api-entrypoint.log",
            error_log=log_dir / "error.log",
            cron_log=log_dir / "cron.log",
            server_log=log_dir / "redata.log",
            job_log=log_dir / "redata_job.log",
            health_log=log_dir / "cron_up.log",
        )

    def ensure(self) -> None:
        """Create the log directory and touch every log file."""
        self.log_dir.mkdir(parents=True, exist_ok=True)
        for path in (self.main_log, self.error_log, self.cron_log, self.server_log, self.job_log):
            path.touch(exist_ok=True)


def _formatter(structured: bool) -> logging.Formatter:
    if structured:
        return JSONFormatter()
    return logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)


def _tagged(handler: logging.Handler, formatter: logging.Formatter, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(SecretRedactionFilter())
    setattr(handler, _HANDLER_TAG, True)
    return handler


def configure_logging(
    paths: LogPaths,
    *,
    main_log: Path | None = None,
    structured: bool = False,
    level: int = logging.INFO,
) -> None:
    """Install stderr, main-log and error-log handlers on the root logger.

    Parameters
    ----------
    paths:
        The log layout; the directory and files are created if missing.
    main_log:
        Override for the main log file (the scheduled report job logs to
        ``redata.log`` rather than the entrypoint log).
    structured:
        Emit JSON lines instead of the bracketed text format.
    level:
        Root log level.
    """
    paths.ensure()
    formatter = _formatter(structured)

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            root.removeHandler(handler)
            handler.close()

    root.setLevel(level)
    root.addHandler(_tagged(logging.StreamHandler(sys.stderr), formatter, level))
    root.addHandler(_tagged(logging.FileHandler(main_log or paths.main_log, encoding="utf-8"), formatter, level))
    root.addHandler(_tagged(logging.FileHandler(paths.error_log, encoding="utf-8"), formatter, logging.ERROR))


@contextmanager
def job_log(path: Path, *, structured: bool = False) -> Iterator[None]:
    """Temporarily mirror all records into the per-run job log at *path*."""
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = _tagged(logging.FileHandler(path, encoding="utf-8"), _formatter(structured), logging.INFO)
    root = logging.getLogger()
    root.addHandler(handler)
    try:
        yield
    finally:
        root.removeHandler(handler)
        handler.close()


class LogFollower:
    """Copy text appended to a log file onto another stream.

    The scheduled report job runs under cron and only writes to its job log;
    following that file keeps its output visible on the container's stdout.
    Call :meth:`skip_existing` once, then :meth:`pump` periodically.
    """

    def __init__(self, path: Path, sink: IO[str] | None = None) -> None:
        self._path = path
        self._sink = sink if sink is not None else sys.stdout
        self._offset = 0

    def skip_existing(self) -> None:
        """Start following from the current end of the file."""
        try:
            self._offset = self._path.stat().st_size
        except FileNotFoundError:
            self._offset = 0

    def pump(self) -> int:
        """Write any newly appended text to the sink; return the bytes copied."""
        try:
            size = self._path.stat().st_size
        except FileNotFoundError:
            return 0
        if size < self._offset:
            # Truncated or rotated: start again from the top.
            self._offset = 0
        if size == self._offset:
            return 0
        with self._path.open("rb") as fh:
            fh.seek(self._offset)
            chunk = fh.read(size - self._offset)
        self._offset += len(chunk)
        self._sink.write(chunk.decode("utf-8", errors="replace"))
        self._sink.flush()
        return len(chunk)
