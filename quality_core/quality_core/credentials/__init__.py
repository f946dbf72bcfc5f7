"""Credential provisioning: secret backends, warehouse collectors, file materialization."""

from __future__ import annotations

from quality_core.credentials.materializer import CredentialWriter, PendingFile
from quality_core.credentials.provisioner import CredentialProvisioner, ProvisioningResult
from quality_core.credentials.secret_sources import MountedSecretStore, SecretManagerClient
from quality_core.credentials.warehouses import WarehouseCredentials, provisioner_for

__all__ = [
    "CredentialProvisioner",
    "CredentialWriter",
    "MountedSecretStore",
    "PendingFile",
    "ProvisioningResult",
    "SecretManagerClient",
    "WarehouseCredentials",
    "provisioner_for",
]
