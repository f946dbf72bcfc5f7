"""Unit tests for quality_core.startup."""

from __future__ import annotations

import stat
import threading
from unittest.mock import MagicMock, patch

import pytest

from quality_core.config import build_run_configuration, load_settings
from quality_core.credentials.provisioner import CredentialProvisioner, ProvisioningResult
from quality_core.errors import CredentialAccessError, ExternalToolError
from quality_core.models.warehouse import CredentialBundle, WarehouseKind
from quality_core.scheduler.crontab import TriggerInstaller
from quality_core.startup import StartupPipeline, required_tools
from quality_core.supervisor.server import ServerSupervisor

_MODULE = "quality_core.startup"


@pytest.fixture()
def calls() -> list[str]:
    return []


@pytest.fixture()
def collaborators(calls: list[str]):
    """Patch the stages that shell out and record the order they run in."""
    provisioner = MagicMock(spec=CredentialProvisioner)
    provisioner.provision.side_effect = lambda: (
        calls.append("provision")
        or ProvisioningResult(
            bundle=CredentialBundle(kind=WarehouseKind.BIGQUERY),
            environment={"GOOGLE_APPLICATION_CREDENTIALS": "/usr/src/secret/sa.json"},
        )
    )
    installer = MagicMock(spec=TriggerInstaller)
    installer.install.side_effect = lambda triggers: calls.append("install")
    supervisor = MagicMock(spec=ServerSupervisor)
    supervisor.start.side_effect = lambda stop: calls.append("server-start")
    supervisor.supervise.side_effect = lambda stop, deadline=None: calls.append("supervise") or 0

    with (
        patch(f"{_MODULE}.check_dependencies", side_effect=lambda tools: calls.append("dependencies")),
        patch(f"{_MODULE}.WorkspaceBootstrapper") as workspace_cls,
        patch(f"{_MODULE}.ReportRunner") as runner_cls,
    ):
        workspace = workspace_cls.return_value
        workspace.prepare_data_dir.side_effect = lambda: calls.append("data-dir")
        workspace.clone.side_effect = lambda: calls.append("clone")
        workspace.debug.side_effect = lambda: calls.append("debug")
        runner_cls.return_value.run.side_effect = lambda: calls.append("report")
        yield {
            "provisioner": provisioner,
            "installer": installer,
            "supervisor": supervisor,
            "runner_cls": runner_cls,
        }


def _pipeline(settings, collaborators) -> StartupPipeline:
    return StartupPipeline(
        settings,
        build_run_configuration(settings),
        provisioner=collaborators["provisioner"],
        installer=collaborators["installer"],
        supervisor=collaborators["supervisor"],
    )


class TestStartupPipeline:
    def test_stage_order(self, make_settings, collaborators, calls: list[str]):
        code = _pipeline(make_settings(), collaborators).run(threading.Event())
        assert code == 0
        assert calls == [
            "dependencies",
            "data-dir",
            "clone",
            "provision",
            "install",
            "report",
            "server-start",
            "supervise",
        ]

    def test_debug_stage(self, make_settings, collaborators, calls: list[str]):
        _pipeline(make_settings(debug=True), collaborators).run(threading.Event())
        assert calls.index("debug") == calls.index("provision") + 1

    def test_report_receives_credentials(self, make_settings, collaborators):
        _pipeline(make_settings(), collaborators).run(threading.Event())
        _, env = collaborators["runner_cls"].call_args.args
        assert env["GOOGLE_APPLICATION_CREDENTIALS"] == "/usr/src/secret/sa.json"

    def test_env_files_are_persisted(self, make_settings, collaborators):
        settings = make_settings(redata_year=True)
        pipeline = _pipeline(settings, collaborators)
        pipeline.run(threading.Event())

        env_file = pipeline.config.paths.env_file
        assert stat.S_IMODE(env_file.stat().st_mode) == 0o600
        reloaded = build_run_configuration(load_settings(env_file))
        assert reloaded.repo_name == "analytics"
        assert reloaded.window_kind.value == "yearly"

        cron_env = pipeline.config.paths.cron_env_file.read_text(encoding="utf-8")
        assert "export GOOGLE_APPLICATION_CREDENTIALS=/usr/src/secret/sa.json" in cron_env
        assert "export RE_DATA_SEND_ANONYMOUS_USAGE_STATS=0" in cron_env

    def test_provisioning_failure_stops_before_scheduling(self, make_settings, collaborators, calls: list[str]):
        collaborators["provisioner"].provision.side_effect = CredentialAccessError("Secret file not found")
        with pytest.raises(CredentialAccessError):
            _pipeline(make_settings(), collaborators).run(threading.Event())
        assert "install" not in calls
        assert "report" not in calls

    def test_report_failure_prevents_server_start(self, make_settings, collaborators, calls: list[str]):
        collaborators["runner_cls"].return_value.run.side_effect = ExternalToolError("re_data failed")
        with pytest.raises(ExternalToolError):
            _pipeline(make_settings(), collaborators).run(threading.Event())
        assert "server-start" not in calls


class TestRequiredTools:
    def test_secret_manager_needs_gcloud(self, run_config):
        assert run_config.tools.gcloud in required_tools(run_config)

    def test_manual_mode_without_env_secret(self, make_config):
        config = make_config(gcp_secret_key="manual")
        assert config.tools.gcloud not in required_tools(config)
        assert set(required_tools(config)) >= {"git", "dbt", "re_data", "crontab"}
