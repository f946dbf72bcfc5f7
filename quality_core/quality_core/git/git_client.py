"""Thin git client for cloning and refreshing the dbt project.

All interaction with the ``git`` binary goes through
:func:`quality_core.executor.command.run_command` with explicit timeouts, so
callers receive :class:`GitClientError` exceptions with descriptive,
token-free messages rather than raw subprocess failures.  The clone URL
embeds an access token and is registered with the log redaction filter by
the configuration layer.
"""

from __future__ import annotations

import logging
from pathlib import Path

from quality_core.errors import ExternalToolError
from quality_core.executor.command import CommandResult, run_command

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 600  # seconds


class GitClientError(ExternalToolError):
    """Raised when a git operation fails or the repository is invalid."""


def _run_git(
    args: list[str],
    cwd: Path | None,
    *,
    executable: str = "git",
    timeout: float = _DEFAULT_TIMEOUT,
    description: str,
) -> CommandResult:
    try:
        return run_command(
            [executable, *args],
            cwd=cwd,
            timeout=timeout,
            description=description,
        )
    except ExternalToolError as exc:
        raise GitClientError(
            str(exc),
            command=exc.command,
            returncode=exc.returncode,
            output_tail=exc.output_tail,
        ) from exc


def is_working_copy(path: Path) -> bool:
    """Return True when *path* is inside a git working copy."""
    current = path
    while True:
        if (current / ".git").exists():
            return True
        if current.parent == current:
            return False
        current = current.parent


def validate_repo(repo_path: Path) -> None:
    """Verify that *repo_path* exists and belongs to a git working copy.

    Raises
    ------
    GitClientError
        If the path is missing or not under a ``.git`` directory.
    """
    if not repo_path.is_dir():
        raise GitClientError(f"Repository path does not exist: {repo_path}")
    if not is_working_copy(repo_path):
        raise GitClientError(f"Not a git repository (no .git directory): {repo_path}")


def clone(
    url: str,
    destination: Path,
    *,
    executable: str = "git",
    timeout: float = _DEFAULT_TIMEOUT,
) -> None:
    """Clone *url* into *destination*.

    Raises
    ------
    GitClientError
        If the clone fails (bad token, unreachable remote, non-empty target).
    """
    destination.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Cloning dbt repository into %s", destination)
    _run_git(
        ["clone", url, f"{destination}/"],
        None,
        executable=executable,
        timeout=timeout,
        description="git clone",
    )


def sync(
    repo_path: Path,
    *,
    executable: str = "git",
    timeout: float = _DEFAULT_TIMEOUT,
) -> None:
    """Force the working copy at *repo_path* to the remote's latest state.

    Local modifications are discarded (``reset --hard``) and the pull is done
    with rebase so that a diverged local branch never blocks the refresh.
    """
    validate_repo(repo_path)
    logger.info("Updating existing dbt repository at %s", repo_path)
    _run_git(["config", "pull.rebase", "true"], repo_path, executable=executable, timeout=timeout, description="git config")
    _run_git(["reset", "--hard"], repo_path, executable=executable, timeout=timeout, description="git reset")
    _run_git(["pull"], repo_path, executable=executable, timeout=timeout, description="git pull")
