"""Unit tests for quality_core.git.git_client."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from quality_core.git.git_client import GitClientError, clone, is_working_copy, sync, validate_repo

_RUN = "quality_core.executor.command.subprocess.run"


def _ok() -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(args=[], returncode=0, stdout="", stderr="")


@pytest.fixture()
def repo(tmp_path: Path) -> Path:
    (tmp_path / "repo" / ".git").mkdir(parents=True)
    (tmp_path / "repo" / "analytics").mkdir()
    return tmp_path / "repo"


class TestWorkingCopy:
    def test_subdirectory_of_repo(self, repo: Path):
        assert is_working_copy(repo / "analytics") is True

    def test_plain_directory(self, tmp_path: Path):
        assert is_working_copy(tmp_path) is False

    def test_validate_missing_path(self, tmp_path: Path):
        with pytest.raises(GitClientError, match="does not exist"):
            validate_repo(tmp_path / "missing")

    def test_validate_not_a_repo(self, tmp_path: Path):
        with pytest.raises(GitClientError, match="Not a git repository"):
            validate_repo(tmp_path)


class TestClone:
    def test_clone_command(self, tmp_path: Path):
        with patch(_RUN, return_value=_ok()) as mock_run:
            clone("https://tok@host/r.git", tmp_path / "data" / "dbt", timeout=30)
        cmd = mock_run.call_args.args[0]
        assert cmd == ["git", "clone", "https://tok@host/r.git", f"{tmp_path / 'data' / 'dbt'}/"]
        assert mock_run.call_args.kwargs["timeout"] == 30
        assert (tmp_path / "data").is_dir()

    def test_clone_failure_is_git_error(self, tmp_path: Path):
        failed = subprocess.CompletedProcess(args=[], returncode=128, stdout="", stderr="fatal: not found")
        with patch(_RUN, return_value=failed):
            with pytest.raises(GitClientError) as exc_info:
                clone("https://tok@host/r.git", tmp_path / "dbt")
        assert exc_info.value.returncode == 128
        assert "fatal: not found" in exc_info.value.output_tail


class TestSync:
    def test_force_refresh_sequence(self, repo: Path):
        project = repo / "analytics"
        with patch(_RUN, return_value=_ok()) as mock_run:
            sync(project)
        commands = [c.args[0] for c in mock_run.call_args_list]
        assert commands == [
            ["git", "config", "pull.rebase", "true"],
            ["git", "reset", "--hard"],
            ["git", "pull"],
        ]
        assert all(c.kwargs["cwd"] == project for c in mock_run.call_args_list)

    def test_pull_failure_stops(self, repo: Path):
        results = [_ok(), _ok(), subprocess.CompletedProcess(args=[], returncode=1, stdout="", stderr="conflict")]
        with patch(_RUN, side_effect=results):
            with pytest.raises(GitClientError, match="git pull failed"):
                sync(repo)
