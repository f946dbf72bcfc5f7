"""Credential provisioning for one run.

Provisioning happens in phases so that a missing or malformed secret never
leaves half-configured state behind for later stages:

1. **Collect** -- decode the service-account secret, check manual profiles,
   and read every mounted warehouse secret.  Nothing is written yet.
2. **Identity** -- write the service-account key(s) and activate them with
   ``gcloud`` so the secret manager can be queried.
3. **Secret manager** -- fetch and validate the dbt / re_data profiles and
   the optional environment payload, then write them.

Any failure after the first write rolls back every file written so far
before the error propagates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from pydantic import SecretStr

from quality_core.config import RunConfiguration
from quality_core.credentials.materializer import CredentialWriter, PendingFile
from quality_core.credentials.secret_sources import (
    MountedSecretStore,
    SecretManagerClient,
    decode_base64,
    decode_json_key,
    decode_yaml_profile,
    parse_env_payload,
)
from quality_core.credentials.warehouses import WarehouseCredentials, provisioner_for
from quality_core.errors import CredentialAccessError
from quality_core.models.warehouse import CredentialBundle, CredentialSource
from quality_core.telemetry.redaction import log_env_var

logger = logging.getLogger(__name__)


@dataclass
class _IdentityPlan:
    files: list[PendingFile] = field(default_factory=list)
    environment: dict[str, str] = field(default_factory=dict)
    activate_key_file: PendingFile | None = None


@dataclass(frozen=True)
class ProvisioningResult:
    """The materialized bundle plus every environment assignment to forward."""

    bundle: CredentialBundle
    environment: dict[str, str]


class CredentialProvisioner:
    """Resolve credentials for the configured warehouse and credential source.

    Parameters
    ----------
    config:
        The validated run configuration.
    secret_manager:
        Client for the cloud secret manager; defaults to the ``gcloud`` CLI.
    store:
        Mounted secret files; defaults to ``config.paths.mounted_secrets_dir``.
    """

    def __init__(
        self,
        config: RunConfiguration,
        *,
        secret_manager: SecretManagerClient | None = None,
        store: MountedSecretStore | None = None,
    ) -> None:
        self._config = config
        self._secrets = secret_manager or SecretManagerClient(config.tools.gcloud)
        self._store = store or MountedSecretStore(config.paths.mounted_secrets_dir)

    # -- Phase 1: collect ------------------------------------------------------

    def _collect_identity(self) -> _IdentityPlan:
        config = self._config
        plan = _IdentityPlan()

        if config.credential_source is CredentialSource.SERVICE_ACCOUNT:
            logger.info("Authenticating with GCP using service account")
            if config.service_account_secret is None:
                raise CredentialAccessError("Service account authentication requires SA_SECRET")
            key_text = decode_json_key(config.service_account_secret.get_secret_value(), "SA_SECRET")
            key_file = PendingFile(config.paths.service_account_key, SecretStr(key_text))
            plan.files.append(key_file)
            plan.activate_key_file = key_file
            plan.environment["GOOGLE_APPLICATION_CREDENTIALS"] = str(key_file.path)
            if config.gcp_project:
                plan.environment["BIGQUERY_PROJECT_ID"] = config.gcp_project
            else:
                logger.warning("Project Name not in environment variables")
        elif config.credential_source is CredentialSource.DEFAULT_IDENTITY:
            logger.info("Using default GCP account")
        else:
            logger.info("Manual dbt profiles.yml configuration")
            profiles = config.paths.dbt_profiles_path
            if not profiles.is_file():
                raise CredentialAccessError(f"Manual credential mode requires {profiles} to exist")

        return plan

    def _collect_warehouse(self) -> WarehouseCredentials:
        provisioner = provisioner_for(self._config.warehouse_kind)
        return provisioner.collect(self._store, self._config)

    # -- Phase 3: secret manager ------------------------------------------------

    def _fetch_profiles(self) -> list[PendingFile]:
        config = self._config
        if config.credential_source is CredentialSource.MANUAL:
            return []
        if not config.profile_secret_name:
            logger.warning("No profile secret name configured for the secret manager")
            return []

        profile = decode_yaml_profile(
            self._secrets.access(config.profile_secret_name),
            config.profile_secret_name,
        )
        files = [PendingFile(config.paths.dbt_profiles_path, SecretStr(profile))]

        if config.credential_source is CredentialSource.SERVICE_ACCOUNT and config.re_data_profile_secret_name:
            re_data_profile = decode_yaml_profile(
                self._secrets.access(config.re_data_profile_secret_name),
                config.re_data_profile_secret_name,
            )
            files.append(PendingFile(config.paths.re_data_profile_path, SecretStr(re_data_profile)))
        return files

    def _fetch_environment_secret(self) -> dict[str, str]:
        name = self._config.environment_secret_name
        if not name:
            return {}
        logger.info("Loading environment secret %s", name)
        return parse_env_payload(decode_base64(self._secrets.access(name), name))

    # -- Entry point ---------------------------------------------------------------

    def provision(self) -> ProvisioningResult:
        """Collect, materialize and activate every credential for this run.

        Raises
        ------
        CredentialAccessError
            On any missing, malformed or unwritable secret.  Files written
            before the failure are rolled back.
        """
        identity = self._collect_identity()
        warehouse = self._collect_warehouse()

        writer = CredentialWriter()
        try:
            for pending in [*identity.files, *warehouse.files]:
                writer.write(pending)

            if identity.activate_key_file is not None:
                self._secrets.activate_service_account(
                    identity.activate_key_file.path,
                    self._config.service_account_email,
                )
                if self._config.gcp_project:
                    self._secrets.set_project(self._config.gcp_project)
            if warehouse.activate_key_file is not None:
                self._secrets.activate_service_account(warehouse.activate_key_file)

            for pending in self._fetch_profiles():
                writer.write(pending)
            extra_env = self._fetch_environment_secret()
        except Exception:
            writer.rollback()
            raise

        bundle_env = {**identity.environment, **warehouse.environment}
        bundle = CredentialBundle(
            kind=self._config.warehouse_kind,
            values={name: SecretStr(value) for name, value in bundle_env.items()},
            files=writer.written,
        )

        environment = {**extra_env, **bundle_env}
        for name in sorted(environment):
            log_env_var(name, environment[name], logger)
        logger.info("%s secrets configured", self._config.warehouse_kind.value)
        return ProvisioningResult(bundle=bundle, environment=environment)
