"""Unit tests for quality_core.runner.report_runner."""

from __future__ import annotations

from datetime import date
from unittest.mock import MagicMock, patch

import pytest

from quality_core.errors import ExternalToolError
from quality_core.models.window import NotifyChannel, WindowKind
from quality_core.runner.report_runner import ReportRunner

_TODAY = date(2024, 7, 15)


@pytest.fixture()
def workspace():
    with patch("quality_core.runner.report_runner.WorkspaceBootstrapper") as mock_cls:
        yield mock_cls.return_value


@pytest.fixture()
def re_data():
    with patch("quality_core.runner.report_runner.ReDataClient") as mock_cls:
        yield mock_cls


class TestReportRunner:
    def test_monthly_run_without_notifications(self, run_config, workspace: MagicMock, re_data: MagicMock):
        result = ReportRunner(run_config, clock=lambda: _TODAY).run()

        workspace.sync.assert_called_once()
        workspace.ensure_target_path.assert_called_once()
        workspace.refresh_dependencies.assert_called_once()
        re_data.return_value.generate.assert_called_once_with(date(2024, 7, 1), date(2024, 7, 16), "days:1")
        re_data.return_value.notify.assert_not_called()
        assert result.window.kind is WindowKind.MONTHLY
        assert result.notified == ()

    def test_client_bound_to_project(self, run_config, workspace: MagicMock, re_data: MagicMock):
        ReportRunner(run_config, {"REDSHIFT_HOST": "h"}).run(_TODAY)
        kwargs = re_data.call_args.kwargs
        assert re_data.call_args.args == (run_config.project_dir,)
        assert kwargs["profiles_dir"] == run_config.project_dir
        assert kwargs["log_path"] == run_config.paths.logs.server_log
        assert kwargs["env"]["REDSHIFT_HOST"] == "h"

    def test_yearly_window(self, make_config, workspace: MagicMock, re_data: MagicMock):
        config = make_config(redata_year=True, redata_last_quarter=True)
        ReportRunner(config).run(_TODAY)
        re_data.return_value.generate.assert_called_once_with(date(2024, 1, 1), date(2024, 7, 16), "days:1")

    def test_quarterly_window(self, make_config, workspace: MagicMock, re_data: MagicMock):
        ReportRunner(make_config(redata_last_quarter=True)).run(_TODAY)
        re_data.return_value.generate.assert_called_once_with(date(2024, 7, 1), date(2024, 9, 30), "days:1")

    def test_notifications_use_channel_windows(self, make_config, workspace: MagicMock, re_data: MagicMock):
        config = make_config(redata_notify=True, redata_notify_slack=True, redata_notify_email=True)
        result = ReportRunner(config).run(_TODAY)

        client = re_data.return_value
        assert client.notify.call_args_list[0].args == (NotifyChannel.SLACK, date(2024, 7, 15), date(2024, 7, 16))
        assert client.notify.call_args_list[1].args == (NotifyChannel.EMAIL, date(2024, 7, 14), date(2024, 7, 16))
        assert result.notified == (NotifyChannel.SLACK, NotifyChannel.EMAIL)

    def test_generate_failure_skips_notifications(self, make_config, workspace: MagicMock, re_data: MagicMock):
        config = make_config(redata_notify=True, redata_notify_slack=True)
        re_data.return_value.generate.side_effect = ExternalToolError("re_data overview generate failed")
        with pytest.raises(ExternalToolError):
            ReportRunner(config).run(_TODAY)
        re_data.return_value.notify.assert_not_called()

    def test_notification_failure_is_fatal(self, make_config, workspace: MagicMock, re_data: MagicMock):
        config = make_config(redata_notify=True, redata_notify_slack=True, redata_notify_email=True)
        re_data.return_value.notify.side_effect = [None, ExternalToolError("re_data notify email failed")]
        with pytest.raises(ExternalToolError, match="notify email"):
            ReportRunner(config).run(_TODAY)

    def test_dependency_failure_stops_before_generation(self, run_config, workspace: MagicMock, re_data: MagicMock):
        workspace.refresh_dependencies.side_effect = ExternalToolError("dbt deps failed")
        with pytest.raises(ExternalToolError, match="dbt deps"):
            ReportRunner(run_config).run(_TODAY)
        re_data.return_value.generate.assert_not_called()
