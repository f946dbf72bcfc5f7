"""Per-warehouse credential collection.

Each supported :class:`~quality_core.models.warehouse.WarehouseKind` has one
provisioner class.  :func:`provisioner_for` resolves the class through a
registry keyed by the enum, so adding a warehouse means adding a class and
a registry entry; there is no string matching anywhere else.

Provisioners only *collect*: they read and decode the mounted secrets into a
:class:`WarehouseCredentials` value.  Nothing is written until the
:class:`~quality_core.credentials.provisioner.CredentialProvisioner` has
collected everything successfully.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from pydantic import SecretStr

from quality_core.config import RunConfiguration
from quality_core.credentials.materializer import PendingFile
from quality_core.credentials.secret_sources import MountedSecretStore, decode_json_key, decode_pem
from quality_core.models.warehouse import CredentialSource, WarehouseKind
from quality_core.telemetry.redaction import register_secret

logger = logging.getLogger(__name__)


@dataclass
class WarehouseCredentials:
    """Decoded warehouse secrets ready to be materialized."""

    kind: WarehouseKind
    environment: dict[str, str] = field(default_factory=dict)
    files: list[PendingFile] = field(default_factory=list)
    activate_key_file: Path | None = None


@dataclass(frozen=True)
class MountedValue:
    """A mounted secret file forwarded as an environment variable."""

    file_name: str
    env_name: str
    required: bool
    secret: bool = False


class WarehouseProvisioner(Protocol):
    """Structural interface for warehouse credential collectors."""

    kind: WarehouseKind

    def collect(self, store: MountedSecretStore, config: RunConfiguration) -> WarehouseCredentials:
        """Read and decode every secret this warehouse needs.

        Raises
        ------
        CredentialAccessError
            If a required secret is missing or malformed.
        """
        ...


def _collect_values(store: MountedSecretStore, values: tuple[MountedValue, ...]) -> dict[str, str]:
    # Required values are read first so a missing one fails before optional reads.
    env: dict[str, str] = {}
    for spec in sorted(values, key=lambda v: not v.required):
        if spec.required:
            value = store.read(spec.file_name, secret=spec.secret)
        else:
            value = store.read_optional(spec.file_name, secret=spec.secret)
            if value is None:
                continue
        if spec.secret:
            register_secret(value)
        env[spec.env_name] = value
    return env


class BigQueryProvisioner:
    kind = WarehouseKind.BIGQUERY

    SERVICE_ACCOUNT_FILE = "DBT_DEPLOY_GCP_SA_SECRET"
    OPTIONAL_VALUES: tuple[MountedValue, ...] = (
        MountedValue("BIGQUERY_PROJECT_ID", "BIGQUERY_PROJECT_ID", required=False),
        MountedValue("BIGQUERY_REGION", "BIGQUERY_REGION", required=False),
        MountedValue("DATA_ANALYSIS_GCP_SA_EMAIL", "DATA_ANALYSIS_GCP_SA_EMAIL", required=False),
    )

    def collect(self, store: MountedSecretStore, config: RunConfiguration) -> WarehouseCredentials:
        creds = WarehouseCredentials(kind=self.kind)
        if config.credential_source is CredentialSource.SERVICE_ACCOUNT:
            # The secret-manager flow already materializes and activates sa.json.
            logger.info("BigQuery credentials provided by the service-account secret; skipping mounted key")
            return creds

        logger.info("Configuring BigQuery secrets")
        store.require_root()
        key_text = decode_json_key(store.read(self.SERVICE_ACCOUNT_FILE), self.SERVICE_ACCOUNT_FILE)
        key_path = config.paths.service_account_key
        creds.files.append(PendingFile(key_path, SecretStr(key_text)))
        creds.activate_key_file = key_path
        creds.environment["GOOGLE_APPLICATION_CREDENTIALS"] = str(key_path)
        creds.environment.update(_collect_values(store, self.OPTIONAL_VALUES))
        return creds


class SnowflakeProvisioner:
    kind = WarehouseKind.SNOWFLAKE

    def collect(self, store: MountedSecretStore, config: RunConfiguration) -> WarehouseCredentials:
        logger.info("Configuring Snowflake secrets")
        store.require_root()
        private_key = decode_pem(store.read("SNOWFLAKE_PRIVATE_KEY"), "SNOWFLAKE_PRIVATE_KEY")
        passphrase = store.read("SNOWFLAKE_PASSPHRASE")
        register_secret(passphrase)

        key_path = config.paths.snowflake_key_path
        creds = WarehouseCredentials(kind=self.kind)
        creds.files.append(PendingFile(key_path, SecretStr(private_key)))
        creds.environment["SNOWFLAKE_PRIVATE_KEY_PATH"] = str(key_path)
        creds.environment["SNOWSQL_PRIVATE_KEY_PASSPHRASE"] = passphrase
        return creds


class _EnvOnlyProvisioner:
    """Warehouses whose credentials are plain values forwarded as env vars."""

    kind: WarehouseKind
    VALUES: tuple[MountedValue, ...] = ()

    def collect(self, store: MountedSecretStore, config: RunConfiguration) -> WarehouseCredentials:
        logger.info("Configuring %s secrets", self.kind.value.capitalize())
        store.require_root()
        return WarehouseCredentials(kind=self.kind, environment=_collect_values(store, self.VALUES))


class RedshiftProvisioner(_EnvOnlyProvisioner):
    kind = WarehouseKind.REDSHIFT
    VALUES = (
        MountedValue("REDSHIFT_USER", "REDSHIFT_USER", required=True),
        MountedValue("REDSHIFT_PASSWORD", "REDSHIFT_PASSWORD", required=True, secret=True),
        MountedValue("REDSHIFT_HOST", "REDSHIFT_HOST", required=True),
        MountedValue("REDSHIFT_PORT", "REDSHIFT_PORT", required=False),
    )


class FabricProvisioner(_EnvOnlyProvisioner):
    kind = WarehouseKind.FABRIC
    VALUES = (
        MountedValue("FABRIC_USER", "FABRIC_USER", required=True),
        MountedValue("FABRIC_PASSWORD", "FABRIC_PASSWORD", required=True, secret=True),
        MountedValue("FABRIC_SERVER", "FABRIC_SERVER", required=True),
        MountedValue("FABRIC_DATABASE", "FABRIC_DATABASE", required=True),
        MountedValue("FABRIC_PORT", "FABRIC_PORT", required=False),
        MountedValue("FABRIC_AUTHENTICATION", "FABRIC_AUTHENTICATION", required=False),
    )


_REGISTRY: dict[WarehouseKind, type[WarehouseProvisioner]] = {
    WarehouseKind.BIGQUERY: BigQueryProvisioner,
    WarehouseKind.SNOWFLAKE: SnowflakeProvisioner,
    WarehouseKind.REDSHIFT: RedshiftProvisioner,
    WarehouseKind.FABRIC: FabricProvisioner,
}


def provisioner_for(kind: WarehouseKind) -> WarehouseProvisioner:
    """Return the provisioner for *kind*."""
    return _REGISTRY[kind]()
