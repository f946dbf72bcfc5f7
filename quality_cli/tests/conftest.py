"""Shared fixtures for CLI tests.

Every test gets a clean engine environment pointing at ``tmp_path`` and
the root logger is restored afterwards, because the commands install
file handlers.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from quality_core.config import Settings
from quality_core.telemetry.redaction import clear_registered_secrets

REPO_URL = "https://ghp_clitoken987@github.com/acme/analytics.git"


@pytest.fixture(autouse=True)
def cli_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[Path]:
    for name in Settings.model_fields:
        monkeypatch.delenv(name.upper(), raising=False)
    monkeypatch.setenv("GITLINK_SECRET", REPO_URL)
    monkeypatch.setenv("DBT_REPO_NAME", "analytics")
    monkeypatch.setenv("DATA_WAREHOUSE_PLATFORM", "bigquery")
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("APP_DIR", str(tmp_path / "app"))
    monkeypatch.setenv("CRON_ENV_FILE", str(tmp_path / "cron.env"))
    monkeypatch.setenv("DBT_PROFILES_PATH", str(tmp_path / "home" / ".dbt" / "profiles.yml"))
    monkeypatch.setenv("RE_DATA_PROFILE_PATH", str(tmp_path / "home" / ".re_data" / "re_data.yml"))

    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    clear_registered_secrets()
    yield tmp_path
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    clear_registered_secrets()
