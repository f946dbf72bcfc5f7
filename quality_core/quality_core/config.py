"""Engine configuration loaded from environment variables.

The container contract fixes the environment variable names (``GITLINK_SECRET``,
``DBT_REPO_NAME``, ``CRON_TIME`` ...), so :class:`Settings` reads them
unprefixed.  :func:`build_run_configuration` validates the raw settings once
and produces the immutable :class:`RunConfiguration` that is passed
explicitly to every component.
"""

from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from quality_core.errors import ConfigurationError
from quality_core.models.trigger import validate_cron_expression
from quality_core.models.warehouse import CredentialSource, WarehouseKind
from quality_core.models.window import WindowKind
from quality_core.telemetry.logs import LogPaths
from quality_core.telemetry.redaction import register_secret

logger = logging.getLogger(__name__)

DEFAULT_CRON_TIME = "0 6 * * *"
HEALTH_CHECK_CRON_TIME = "0 */6 * * *"
BACKFILL_THREADS = 26
REPORT_SERVER_PORT = 8085


class Settings(BaseSettings):
    """Raw settings read from the process environment (and an optional env file)."""

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Repository
    gitlink_secret: SecretStr | None = None
    dbt_repo_name: str | None = None
    dbt_project_name: str | None = None
    secret_dbt_package_repo_token: SecretStr | None = None
    secret_package_repo_token_name: str | None = None

    # Schedule
    cron_time: str | None = None

    # Warehouse
    data_warehouse_platform: str | None = None
    data_warehouse_secret: str | None = None

    # Credential source
    gcp_secret_key: str = "false"
    sa_secret: SecretStr | None = None
    sa_email: str | None = None
    project_name: str | None = None
    profile_secret_name: str | None = None
    re_data_profile_secret_name: str | None = None
    gcp_ce_acc: bool = False
    dbt_secrets: str | None = None

    # Report window and notifications
    redata_year: bool = False
    redata_last_quarter: bool = False
    redata_notify: bool = False
    redata_notify_slack: bool = False
    redata_notify_email: bool = False

    # Toggles
    debug: bool = False
    dbt_deps: bool = False
    structured_logging: bool = False

    # Backfill
    backfill_start_date: str | None = None
    backfill_end_date: str | None = None

    # Filesystem layout
    data_dir: Path = Path("/data")
    log_dir: Path | None = None
    app_dir: Path = Path("/usr/app/dbt")
    mounted_secrets_dir: Path = Path("/fastbi/secrets")
    secret_key_dir: Path = Path("/usr/src/secret")
    snowflake_key_path: Path = Path("/snowsql/secrets/rsa_key.p8")
    dbt_profiles_path: Path = Path.home() / ".dbt" / "profiles.yml"
    re_data_profile_path: Path = Path.home() / ".re_data" / "re_data.yml"
    cron_env_file: Path = Path("/tmp/cron.env")

    # External tools
    dbt_executable: str = "dbt"
    re_data_executable: str = "re_data"
    git_executable: str = "git"
    gcloud_executable: str = "gcloud"
    quality_core_executable: str = "/usr/local/bin/quality-core"
    cron_restart_command: str = "/etc/init.d/cron restart"
    tool_timeout_seconds: int = 7200
    git_timeout_seconds: int = 600

    # Report server
    report_server_port: int = REPORT_SERVER_PORT
    server_grace_seconds: float = 5.0
    server_poll_interval: float = 30.0

    @field_validator(
        "gitlink_secret",
        "secret_dbt_package_repo_token",
        "sa_secret",
        mode="before",
    )
    @classmethod
    def _empty_secret_is_unset(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class WorkspacePaths(BaseModel):
    """Fixed filesystem locations used by every stage."""

    model_config = ConfigDict(frozen=True)

    data_dir: Path
    app_dir: Path
    mounted_secrets_dir: Path
    secret_key_dir: Path
    snowflake_key_path: Path
    dbt_profiles_path: Path
    re_data_profile_path: Path
    cron_env_file: Path
    logs: LogPaths

    @property
    def clone_dir(self) -> Path:
        return self.data_dir / "dbt"

    @property
    def env_file(self) -> Path:
        return self.app_dir / ".env"

    @property
    def service_account_key(self) -> Path:
        return self.secret_key_dir / "sa.json"


class ToolOptions(BaseModel):
    """Executables and limits for external command invocations."""

    model_config = ConfigDict(frozen=True)

    dbt: str = "dbt"
    re_data: str = "re_data"
    git: str = "git"
    gcloud: str = "gcloud"
    quality_core: str = "quality-core"
    cron_restart: tuple[str, ...] = ("/etc/init.d/cron", "restart")
    timeout_seconds: int = 7200
    git_timeout_seconds: int = 600


class ServerOptions(BaseModel):
    """Report server binding and supervision timing."""

    model_config = ConfigDict(frozen=True)

    port: int = REPORT_SERVER_PORT
    grace_seconds: float = 5.0
    poll_interval: float = 30.0


class RunConfiguration(BaseModel):
    """Validated, immutable parameters for one process invocation."""

    model_config = ConfigDict(frozen=True)

    repo_url: SecretStr
    repo_name: str
    project_name: str | None = None
    package_repo_token: SecretStr | None = None
    package_repo_token_name: str | None = None

    schedule: str = DEFAULT_CRON_TIME
    warehouse_kind: WarehouseKind
    credential_source: CredentialSource = CredentialSource.DEFAULT_IDENTITY

    service_account_secret: SecretStr | None = None
    service_account_email: str | None = None
    gcp_project: str | None = None
    profile_secret_name: str | None = None
    re_data_profile_secret_name: str | None = None
    environment_secret_name: str | None = None

    window_kind: WindowKind = WindowKind.MONTHLY
    notify_slack: bool = False
    notify_email: bool = False

    debug: bool = False
    backfill_deps: bool = False
    structured_logging: bool = False

    paths: WorkspacePaths
    tools: ToolOptions = ToolOptions()
    server: ServerOptions = ServerOptions()

    @property
    def project_dir(self) -> Path:
        return self.paths.clone_dir / self.repo_name

    @property
    def dbt_project_file(self) -> Path:
        return self.project_dir / "dbt_project.yml"

    def base_environment(self) -> dict[str, str]:
        """Environment assignments every dbt/re_data invocation needs."""
        env: dict[str, str] = {"RE_DATA_SEND_ANONYMOUS_USAGE_STATS": "0"}
        if self.package_repo_token is not None and self.package_repo_token_name:
            env[self.package_repo_token_name] = self.package_repo_token.get_secret_value()
        if self.package_repo_token is not None:
            env["SECRET_DBT_PACKAGE_REPO_TOKEN"] = self.package_repo_token.get_secret_value()
        return env


def load_settings(env_file: Path | None = None, **overrides: object) -> Settings:
    """Load settings from the environment, optionally layering an env file.

    Raises
    ------
    ConfigurationError
        If a value cannot be coerced (e.g. a non-boolean toggle).
    """
    try:
        if env_file is not None:
            if not env_file.is_file():
                raise ConfigurationError(f"Environment file not found: {env_file}")
            return Settings(_env_file=env_file, **overrides)  # type: ignore[call-arg]
        return Settings(**overrides)  # type: ignore[arg-type]
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid settings: {exc}") from exc


def resolve_warehouse_kind(settings: Settings) -> WarehouseKind:
    """Return the configured warehouse kind (``DATA_WAREHOUSE_SECRET`` wins)."""
    raw = settings.data_warehouse_secret or settings.data_warehouse_platform
    if not raw or not raw.strip():
        raise ConfigurationError("DATA_WAREHOUSE_PLATFORM (or DATA_WAREHOUSE_SECRET) must be set")
    try:
        return WarehouseKind.parse(raw)
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc


def select_window_kind(yearly: bool, quarterly: bool) -> WindowKind:
    """Pick the report window; yearly beats quarterly beats the monthly default."""
    if yearly:
        return WindowKind.YEARLY
    if quarterly:
        return WindowKind.QUARTERLY
    return WindowKind.MONTHLY


def _register_repo_secrets(repo_url: SecretStr, package_token: SecretStr | None) -> None:
    url = repo_url.get_secret_value()
    register_secret(url)
    parts = urlsplit(url)
    if parts.password:
        register_secret(parts.password)
    elif parts.username and "@" in parts.netloc:
        # https://<token>@host/... style URLs carry the token as the user part.
        register_secret(parts.username)
    if package_token is not None:
        register_secret(package_token.get_secret_value())


def build_run_configuration(settings: Settings) -> RunConfiguration:
    """Validate *settings* and build the immutable run configuration.

    Every check happens here, before any filesystem side effect, so that a
    configuration mistake never leaves half-provisioned state behind.

    Raises
    ------
    ConfigurationError
        On missing required values, an unrecognized warehouse kind, an
        invalid cron expression, or an incomplete service-account setup.
    """
    repo_url = settings.gitlink_secret
    repo_setting = settings.dbt_repo_name
    if not repo_url or not repo_setting:
        missing = [
            name
            for name, value in (("GITLINK_SECRET", repo_url), ("DBT_REPO_NAME", repo_setting))
            if not value
        ]
        raise ConfigurationError(f"Required environment variables not set: {', '.join(missing)}")

    repo_name = repo_setting.strip().strip("/")
    if not repo_name or ".." in Path(repo_name).parts:
        raise ConfigurationError(f"Invalid DBT_REPO_NAME: {settings.dbt_repo_name!r}")

    warehouse_kind = resolve_warehouse_kind(settings)

    schedule = DEFAULT_CRON_TIME
    if settings.cron_time and settings.cron_time.strip():
        try:
            schedule = validate_cron_expression(settings.cron_time)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid CRON_TIME: {exc}") from exc

    credential_source = CredentialSource.from_toggle(settings.gcp_secret_key)
    if credential_source is CredentialSource.SERVICE_ACCOUNT and settings.sa_secret is None:
        raise ConfigurationError("GCP_SECRET_KEY=true requires SA_SECRET")
    if settings.profile_secret_name and credential_source is CredentialSource.SERVICE_ACCOUNT:
        if not settings.re_data_profile_secret_name:
            raise ConfigurationError("PROFILE_SECRET_NAME requires RE_DATA_PROFILE_SECRET_NAME")
    if settings.gcp_ce_acc and not settings.dbt_secrets:
        raise ConfigurationError("GCP_CE_ACC=true requires DBT_SECRETS")

    _register_repo_secrets(repo_url, settings.secret_dbt_package_repo_token)
    if settings.sa_secret is not None:
        register_secret(settings.sa_secret.get_secret_value())

    cron_restart = tuple(settings.cron_restart_command.split())
    if not cron_restart:
        raise ConfigurationError("CRON_RESTART_COMMAND must not be empty")

    paths = WorkspacePaths(
        data_dir=settings.data_dir,
        app_dir=settings.app_dir,
        mounted_secrets_dir=settings.mounted_secrets_dir,
        secret_key_dir=settings.secret_key_dir,
        snowflake_key_path=settings.snowflake_key_path,
        dbt_profiles_path=settings.dbt_profiles_path,
        re_data_profile_path=settings.re_data_profile_path,
        cron_env_file=settings.cron_env_file,
        logs=LogPaths.under(settings.log_dir or settings.data_dir / "logs"),
    )

    config = RunConfiguration(
        repo_url=repo_url,
        repo_name=repo_name,
        project_name=settings.dbt_project_name,
        package_repo_token=settings.secret_dbt_package_repo_token,
        package_repo_token_name=settings.secret_package_repo_token_name,
        schedule=schedule,
        warehouse_kind=warehouse_kind,
        credential_source=credential_source,
        service_account_secret=settings.sa_secret,
        service_account_email=settings.sa_email,
        gcp_project=settings.project_name,
        profile_secret_name=settings.profile_secret_name,
        re_data_profile_secret_name=settings.re_data_profile_secret_name,
        environment_secret_name=settings.dbt_secrets if settings.gcp_ce_acc else None,
        window_kind=select_window_kind(settings.redata_year, settings.redata_last_quarter),
        notify_slack=settings.redata_notify and settings.redata_notify_slack,
        notify_email=settings.redata_notify and settings.redata_notify_email,
        debug=settings.debug,
        backfill_deps=settings.dbt_deps,
        structured_logging=settings.structured_logging,
        paths=paths,
        tools=ToolOptions(
            dbt=settings.dbt_executable,
            re_data=settings.re_data_executable,
            git=settings.git_executable,
            gcloud=settings.gcloud_executable,
            quality_core=settings.quality_core_executable,
            cron_restart=cron_restart,
            timeout_seconds=settings.tool_timeout_seconds,
            git_timeout_seconds=settings.git_timeout_seconds,
        ),
        server=ServerOptions(
            port=settings.report_server_port,
            grace_seconds=settings.server_grace_seconds,
            poll_interval=settings.server_poll_interval,
        ),
    )

    if settings.debug:
        logger.info(
            "Loaded run configuration: warehouse=%s source=%s window=%s schedule=%s",
            config.warehouse_kind.value,
            config.credential_source.value,
            config.window_kind.value,
            config.schedule,
        )
    return config


def _dotenv_quote(value: str) -> str:
    if "'" not in value and "\n" not in value:
        return f"'{value}'"
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


def render_env_file(settings: Settings) -> str:
    """Render the settings that were explicitly set as dotenv lines.

    The scheduled report job runs in a fresh process under cron, which does
    not inherit the container environment; it reloads this file with
    :func:`load_settings`.
    """
    lines: list[str] = []
    for name in sorted(settings.model_fields_set):
        value = getattr(settings, name)
        if value is None:
            continue
        if isinstance(value, SecretStr):
            value = value.get_secret_value()
        elif isinstance(value, bool):
            value = "true" if value else "false"
        lines.append(f"{name.upper()}={_dotenv_quote(str(value))}")
    return "\n".join(lines) + "\n"
