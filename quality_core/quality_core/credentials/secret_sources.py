"""Secret backends: the cloud secret manager and operator-mounted secret files.

Payloads are base64-encoded at rest.  The helpers here decode them into
their natural form (JSON key file, YAML profile, PEM private key) and reject
malformed payloads with :class:`~quality_core.errors.CredentialAccessError`
before anything is written to disk.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from pathlib import Path
from typing import Any

import yaml

from quality_core.errors import CredentialAccessError, ExternalToolError
from quality_core.executor.command import run_command
from quality_core.telemetry.redaction import register_secret

logger = logging.getLogger(__name__)

_PEM_MARKER = "-----BEGIN"


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def decode_base64(payload: str, label: str) -> str:
    """Decode a base64 *payload* into UTF-8 text.

    Raises
    ------
    CredentialAccessError
        If the payload is empty, not valid base64, or not UTF-8.
    """
    compact = "".join(payload.split())
    if not compact:
        raise CredentialAccessError(f"{label} is empty")
    try:
        decoded = base64.b64decode(compact, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise CredentialAccessError(f"Failed to decode {label}: not valid base64 text") from exc
    register_secret(decoded)
    return decoded


def decode_json_key(payload: str, label: str) -> str:
    """Decode a base64 service-account key and check that it is a JSON object."""
    decoded = decode_base64(payload, label)
    try:
        parsed = json.loads(decoded)
    except json.JSONDecodeError as exc:
        raise CredentialAccessError(f"{label} does not decode to valid JSON") from exc
    if not isinstance(parsed, dict):
        raise CredentialAccessError(f"{label} does not decode to a JSON object")
    for field in ("private_key", "private_key_id"):
        value = parsed.get(field)
        if isinstance(value, str):
            register_secret(value)
    return decoded


def decode_yaml_profile(payload: str, label: str) -> str:
    """Decode a base64 YAML profile and check that it parses to a mapping."""
    decoded = decode_base64(payload, label)
    try:
        parsed: Any = yaml.safe_load(decoded)
    except yaml.YAMLError as exc:
        raise CredentialAccessError(f"{label} does not decode to valid YAML") from exc
    if not isinstance(parsed, dict):
        raise CredentialAccessError(f"{label} does not decode to a YAML mapping")
    return decoded


def decode_pem(payload: str, label: str) -> str:
    """Return PEM text from *payload*, which may be raw PEM or base64-encoded PEM."""
    if _PEM_MARKER in payload:
        text = payload.strip() + "\n"
        register_secret(text.strip())
        return text
    decoded = decode_base64(payload, label)
    if _PEM_MARKER not in decoded:
        raise CredentialAccessError(f"{label} does not decode to a PEM private key")
    return decoded.strip() + "\n"


def parse_env_payload(text: str) -> dict[str, str]:
    """Parse ``KEY=VALUE`` lines (optionally ``export``-prefixed and quoted)."""
    env: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key.isidentifier():
            raise CredentialAccessError(f"Malformed environment secret line for {key or '<empty>'!r}")
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        env[key] = value
        register_secret(value)
    return env


# ---------------------------------------------------------------------------
# Cloud secret manager (gcloud CLI)
# ---------------------------------------------------------------------------


class SecretManagerClient:
    """Access Google Cloud Secret Manager and identity through the ``gcloud`` CLI."""

    def __init__(self, executable: str = "gcloud", timeout: float = 120.0) -> None:
        self._executable = executable
        self._timeout = timeout

    def access(self, secret_name: str) -> str:
        """Return the latest version of *secret_name* (still base64-encoded).

        Raises
        ------
        CredentialAccessError
            If the lookup fails or returns an empty payload.
        """
        try:
            result = run_command(
                [self._executable, "secrets", "versions", "access", "latest", f"--secret={secret_name}"],
                timeout=self._timeout,
                description=f"secret manager lookup {secret_name}",
            )
        except ExternalToolError as exc:
            raise CredentialAccessError(f"Failed to access secret {secret_name!r}: {exc}") from exc
        payload = result.stdout.strip()
        if not payload:
            raise CredentialAccessError(f"Secret {secret_name!r} is empty")
        register_secret(payload)
        return payload

    def activate_service_account(self, key_file: Path, email: str | None = None) -> None:
        cmd = [self._executable, "auth", "activate-service-account"]
        if email:
            cmd.append(email)
        cmd += ["--key-file", str(key_file)]
        try:
            run_command(cmd, timeout=self._timeout, description="gcloud auth activate-service-account")
        except ExternalToolError as exc:
            raise CredentialAccessError(f"Failed to activate service account: {exc}") from exc
        logger.info("Service account activated from %s", key_file)

    def set_project(self, project: str) -> None:
        try:
            run_command(
                [self._executable, "config", "set", "project", project],
                timeout=self._timeout,
                description="gcloud config set project",
            )
            run_command(
                [self._executable, "config", "set", "disable_prompts", "true"],
                timeout=self._timeout,
                description="gcloud config set disable_prompts",
            )
        except ExternalToolError as exc:
            raise CredentialAccessError(f"Failed to configure gcloud project {project!r}: {exc}") from exc
        logger.info("Project set to: %s", project)


# ---------------------------------------------------------------------------
# Mounted secret files
# ---------------------------------------------------------------------------


class MountedSecretStore:
    """Read secrets mounted as one-file-per-secret under a directory."""

    def __init__(self, root: Path) -> None:
        self._root = root

    @property
    def root(self) -> Path:
        return self._root

    def require_root(self) -> None:
        if not self._root.is_dir():
            raise CredentialAccessError(f"Secrets directory {self._root} not found")

    def has(self, name: str) -> bool:
        return (self._root / name).is_file()

    def read(self, name: str, *, secret: bool = True) -> str:
        """Return the stripped content of the mounted file *name*.

        Raises
        ------
        CredentialAccessError
            If the file is missing, unreadable, or empty.
        """
        path = self._root / name
        if not path.is_file():
            raise CredentialAccessError(f"Secret file not found: {path}")
        try:
            value = path.read_text(encoding="utf-8").strip()
        except (OSError, UnicodeDecodeError) as exc:
            raise CredentialAccessError(f"Failed to read secret file {path}: {exc}") from exc
        if not value:
            raise CredentialAccessError(f"Secret file is empty: {path}")
        if secret:
            register_secret(value)
        return value

    def read_optional(self, name: str, *, secret: bool = False) -> str | None:
        if not self.has(name):
            return None
        return self.read(name, secret=secret)
