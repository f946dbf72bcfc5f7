"""Uniform invocation of external command-line tools.

All interaction with ``git``, ``dbt``, ``re_data``, ``gcloud`` and ``crontab``
goes through :func:`run_command`, which runs the process via
:func:`subprocess.run` with an explicit timeout and turns every failure into
an :class:`~quality_core.errors.ExternalToolError` carrying the redacted
command line and the tail of the tool's output.  The first failure aborts
the pipeline; nothing here retries.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel

from quality_core.errors import ExternalToolError
from quality_core.telemetry.redaction import redact

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 3600  # seconds
_TAIL_LINES = 20


class CommandResult(BaseModel):
    """Outcome of a successful external command."""

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""


def format_command(cmd: Sequence[str]) -> str:
    """Return a shell-quoted, secret-redacted rendering of *cmd*."""
    return redact(shlex.join(cmd))


def _tail(text: str, lines: int = _TAIL_LINES) -> str:
    return "\n".join(text.strip().splitlines()[-lines:])


def _append_log(log_path: Path, cmd: Sequence[str], stdout: str, stderr: str) -> None:
    log_path.parent.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    with log_path.open("a", encoding="utf-8") as fh:
        fh.write(f"[{stamp}] $ {format_command(cmd)}\n")
        if stdout:
            fh.write(redact(stdout))
            if not stdout.endswith("\n"):
                fh.write("\n")
        if stderr:
            fh.write(redact(stderr))
            if not stderr.endswith("\n"):
                fh.write("\n")


def build_env(extra: Mapping[str, str] | None) -> dict[str, str] | None:
    """Return the process environment overlaid with *extra*, or None to inherit."""
    if not extra:
        return None
    env = dict(os.environ)
    env.update(extra)
    return env


def run_command(
    cmd: Sequence[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    log_path: Path | None = None,
    timeout: float | None = None,
    input_text: str | None = None,
    description: str | None = None,
) -> CommandResult:
    """Execute *cmd* and return its result.

    Parameters
    ----------
    cmd:
        Command list (e.g. ``["dbt", "deps"]``); never passed through a shell.
    cwd:
        Working directory for the subprocess.
    env:
        Extra environment assignments layered over the current environment.
    log_path:
        When given, the command line and its output are appended here.
    timeout:
        Seconds before the process is killed.
    input_text:
        Text written to the process's stdin.
    description:
        Short label used in log lines and error messages.

    Raises
    ------
    ExternalToolError
        On non-zero exit, timeout, or if the executable cannot be started.
    """
    label = description or cmd[0]
    rendered = format_command(cmd)
    effective_timeout = timeout if timeout is not None else _DEFAULT_TIMEOUT
    logger.debug("Running %s: %s", label, rendered)

    try:
        proc = subprocess.run(
            list(cmd),
            cwd=cwd,
            env=build_env(env),
            input=input_text,
            capture_output=True,
            text=True,
            check=False,
            timeout=effective_timeout,
        )
    except subprocess.TimeoutExpired as exc:
        raise ExternalToolError(
            f"{label} timed out after {effective_timeout}s",
            command=rendered,
        ) from exc
    except FileNotFoundError as exc:
        raise ExternalToolError(
            f"{label} failed: executable {cmd[0]!r} not found. Ensure it is installed and on PATH.",
            command=rendered,
        ) from exc
    except OSError as exc:
        raise ExternalToolError(f"{label} could not be started: {exc}", command=rendered) from exc

    if log_path is not None:
        _append_log(log_path, cmd, proc.stdout or "", proc.stderr or "")

    if proc.returncode != 0:
        tail = redact(_tail((proc.stderr or "") or (proc.stdout or "")))
        raise ExternalToolError(
            f"{label} failed with exit code {proc.returncode}: {rendered}" + (f"\n{tail}" if tail else ""),
            command=rendered,
            returncode=proc.returncode,
            output_tail=tail,
        )

    return CommandResult(
        args=list(cmd),
        returncode=proc.returncode,
        stdout=proc.stdout or "",
        stderr=proc.stderr or "",
    )


def check_dependencies(executables: Iterable[str]) -> None:
    """Verify that every executable in *executables* is available on PATH.

    Raises
    ------
    ExternalToolError
        Naming every missing executable.
    """
    names = sorted(set(executables))
    missing = [name for name in names if shutil.which(name) is None]
    if missing:
        raise ExternalToolError(f"Required command(s) not found: {', '.join(missing)}")
    logger.info("Dependencies available: %s", ", ".join(names))
