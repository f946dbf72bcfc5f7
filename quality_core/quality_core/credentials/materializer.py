"""Write credential files with restrictive permissions, rolling back on failure."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import SecretStr

from quality_core.errors import CredentialAccessError

logger = logging.getLogger(__name__)

OWNER_ONLY = 0o600


@dataclass(frozen=True)
class PendingFile:
    """A decoded credential file waiting to be written."""

    path: Path
    content: SecretStr
    mode: int = OWNER_ONLY


@dataclass
class CredentialWriter:
    """Track every credential file written so a failed run can undo them.

    Files that existed before are restored to their previous content on
    :meth:`rollback`; files that did not exist are removed.
    """

    _written: list[tuple[Path, bytes | None]] = field(default_factory=list)

    @property
    def written(self) -> tuple[Path, ...]:
        return tuple(path for path, _ in self._written)

    def write(self, pending: PendingFile) -> Path:
        path = pending.path
        try:
            previous = path.read_bytes() if path.is_file() else None
            path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, pending.mode)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(pending.content.get_secret_value())
            os.chmod(path, pending.mode)
        except OSError as exc:
            raise CredentialAccessError(f"Failed to write credential file {path}: {exc}") from exc
        self._written.append((path, previous))
        logger.info("Wrote credential file %s (mode %o)", path, pending.mode)
        return path

    def rollback(self) -> None:
        """Undo every write, newest first."""
        while self._written:
            path, previous = self._written.pop()
            try:
                if previous is None:
                    path.unlink(missing_ok=True)
                else:
                    path.write_bytes(previous)
            except OSError:
                logger.error("Failed to roll back credential file %s", path)
            else:
                logger.warning("Rolled back credential file %s", path)
