"""Secret redaction for log output.

Secret values must never appear in log text.  Two mechanisms cooperate:

1. **Known values**: every secret the provisioner reads is registered with
   :func:`register_secret`; any occurrence of a registered value in a log
   message is replaced with ``***``.
2. **Marked names**: ``NAME=value`` pairs whose *NAME* contains one of the
   secret markers (``password``, ``key``, ``secret``; case-insensitive)
   have their value masked even when the value was never registered.

:class:`SecretRedactionFilter` applies both to every record passing through
the handlers installed by :func:`quality_core.telemetry.logs.configure_logging`.
"""

from __future__ import annotations

import logging
import re
import threading

logger = logging.getLogger(__name__)

MASK = "***"

SECRET_MARKERS: tuple[str, ...] = ("password", "key", "secret")

# NAME=value or NAME: value, where NAME is an identifier-like token.
_ASSIGNMENT_RE = re.compile(r"(?P<name>[A-Za-z_][A-Za-z0-9_.\-]*)(?P<sep>\s*[=:]\s*)(?P<value>[^\s,;'\"]+)")

# Very short values (e.g. "1", "true") would mask unrelated text.
_MIN_SECRET_LENGTH = 4

_registry_lock = threading.Lock()
_registered_secrets: set[str] = set()


def is_secret_name(name: str) -> bool:
    """Return True when *name* contains a secret marker (case-insensitive)."""
    lowered = name.lower()
    return any(marker in lowered for marker in SECRET_MARKERS)


def register_secret(value: str | None) -> None:
    """Register a literal secret value so that it is scrubbed from all logs."""
    if not value:
        return
    value = value.strip()
    if len(value) < _MIN_SECRET_LENGTH:
        return
    with _registry_lock:
        _registered_secrets.add(value)


def clear_registered_secrets() -> None:
    """Forget all registered secret values (used by tests)."""
    with _registry_lock:
        _registered_secrets.clear()


def redact(text: str) -> str:
    """Return *text* with registered secrets and marked assignments masked."""
    with _registry_lock:
        known = sorted(_registered_secrets, key=len, reverse=True)
    for secret in known:
        if secret in text:
            text = text.replace(secret, MASK)

    def _mask_assignment(match: re.Match[str]) -> str:
        if is_secret_name(match.group("name")) and match.group("value") != MASK:
            return f"{match.group('name')}{match.group('sep')}{MASK}"
        return match.group(0)

    return _ASSIGNMENT_RE.sub(_mask_assignment, text)


def redact_env_value(key: str, value: str) -> str:
    """Return the value to display for environment variable *key*."""
    return MASK if is_secret_name(key) else redact(value)


def log_env_var(key: str, value: str, log: logging.Logger | None = None) -> None:
    """Log an environment assignment, masking the value when *key* is secret."""
    (log or logger).info("Setting environment variable: %s=%s", key, redact_env_value(key, value))


class SecretRedactionFilter(logging.Filter):
    """Logging filter that rewrites each record's message with :func:`redact`."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        scrubbed = redact(message)
        if scrubbed != message:
            record.msg = scrubbed
            record.args = None
        return True
