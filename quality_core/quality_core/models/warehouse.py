"""Warehouse and credential-source selectors, and the materialized credential bundle."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, SecretStr


class WarehouseKind(str, Enum):
    """Target analytical database platform.

    The container contract also accepts the legacy numeric selectors
    ``1``-``4``; see :meth:`parse`.
    """

    BIGQUERY = "bigquery"
    SNOWFLAKE = "snowflake"
    REDSHIFT = "redshift"
    FABRIC = "fabric"

    @classmethod
    def parse(cls, raw: str) -> WarehouseKind:
        """Resolve a selector string or numeric alias.

        Raises
        ------
        ValueError
            If *raw* does not name one of the supported warehouses.
        """
        value = raw.strip().lower()
        if value in _NUMERIC_ALIASES:
            return _NUMERIC_ALIASES[value]
        try:
            return cls(value)
        except ValueError:
            supported = ", ".join(k.value for k in cls)
            raise ValueError(f"Invalid warehouse type value: {raw!r} (expected one of {supported} or 1-4)") from None


_NUMERIC_ALIASES: dict[str, WarehouseKind] = {
    "1": WarehouseKind.BIGQUERY,
    "2": WarehouseKind.SNOWFLAKE,
    "3": WarehouseKind.REDSHIFT,
    "4": WarehouseKind.FABRIC,
}


class CredentialSource(str, Enum):
    """Where the dbt/re_data profiles and cloud identity come from."""

    SERVICE_ACCOUNT = "service_account"
    DEFAULT_IDENTITY = "default_identity"
    MANUAL = "manual"

    @classmethod
    def from_toggle(cls, raw: str) -> CredentialSource:
        """Map the ``GCP_SECRET_KEY`` toggle onto a credential source.

        ``true`` selects the service-account flow, ``false`` (the default)
        the secret manager with the ambient identity, anything else the
        manual flow where profile files are mounted by the operator.
        """
        value = raw.strip().lower()
        if value == "true":
            return cls.SERVICE_ACCOUNT
        if value in ("false", ""):
            return cls.DEFAULT_IDENTITY
        return cls.MANUAL


class CredentialBundle(BaseModel):
    """Decoded, warehouse-specific secret set for one run.

    ``values`` holds the environment assignments forwarded to later stages
    (secrets wrapped in :class:`SecretStr` so they never render in reprs);
    ``files`` lists the key/profile files that were written.
    """

    model_config = ConfigDict(frozen=True)

    kind: WarehouseKind
    values: dict[str, SecretStr] = Field(default_factory=dict)
    files: tuple[Path, ...] = ()

    def environment(self) -> dict[str, str]:
        """Return the plain environment assignments carried by the bundle."""
        return {name: value.get_secret_value() for name, value in self.values.items()}
