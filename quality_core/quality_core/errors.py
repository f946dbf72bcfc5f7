"""Error taxonomy for the data-quality orchestration engine.

Every failure in the startup sequence, the scheduled report job, or a
backfill is fatal.  Each category carries the process exit code the CLI
uses when the error reaches the top level, and a short category label
that is prefixed to the log line so operators can tell configuration
mistakes apart from credential or tool failures.
"""

from __future__ import annotations


class QualityCoreError(Exception):
    """Base class for all fatal orchestration errors."""

    category: str = "error"
    exit_code: int = 1


class ConfigurationError(QualityCoreError):
    """Missing or invalid environment variable, selector, or date input."""

    category = "configuration error"
    exit_code = 2


class CredentialAccessError(QualityCoreError):
    """Secret-manager lookup failure, missing mounted secret, or key-material write failure."""

    category = "credential error"
    exit_code = 3


class ExternalToolError(QualityCoreError):
    """Non-zero exit (or timeout) from an external command-line tool.

    Parameters
    ----------
    message:
        Human-readable description of the failure.
    command:
        The (already redacted) command line that failed.
    returncode:
        Exit status of the tool, when it ran at all.
    output_tail:
        Last lines of combined stdout/stderr for diagnosis.
    """

    category = "external tool error"

    def __init__(
        self,
        message: str,
        *,
        command: str = "",
        returncode: int | None = None,
        output_tail: str = "",
    ) -> None:
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.output_tail = output_tail

    @property
    def exit_code(self) -> int:  # type: ignore[override]
        if self.returncode is not None and 0 < self.returncode < 256:
            return self.returncode
        return 4


class SupervisionError(QualityCoreError):
    """The report server process disappeared after it was started."""

    category = "supervision error"
    exit_code = 5
