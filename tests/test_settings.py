"""Tests for configuration loading."""
from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from jira_merge.errors import ConfigurationError
from jira_merge.settings import (
    get_settings,
    is_host_mode,
    load_host_branches,
    load_host_overrides,
    parse_csv,
)


class TestSettings:
    def test_defaults(self, tmp_path):
        settings = get_settings()
        assert settings.merge_strategy == "merge"
        assert settings.dry_run is False
        assert settings.repo_path == Path.cwd()
        assert settings.project_keys == ["PROJ", "TEST"]
        assert settings.issue_type_order == []
        assert settings.email_enabled is False
        assert settings.email_recipients == ["team@yourcompany.com"]
        assert settings.smtp_port == 587
        assert settings.slack_enabled is False
        assert settings.slack_channel == "#builds"
        assert settings.has_jira_credentials is False

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("JIRA_PROJECT_KEYS", " CORE , OPS ,")
        monkeypatch.setenv("JIRA_ISSUE_TYPE_ORDER", "Bug,Story")
        monkeypatch.setenv("DRY_RUN", "true")
        monkeypatch.setenv("SMTP_PORT", "465")
        monkeypatch.setenv("JIRA_USERNAME", "bot")
        monkeypatch.setenv("JIRA_API_TOKEN", "token")
        settings = get_settings()
        assert settings.project_keys == ["CORE", "OPS"]
        assert settings.issue_type_order == ["Bug", "Story"]
        assert settings.dry_run is True
        assert settings.smtp_port == 465
        assert settings.has_jira_credentials is True

    def test_reads_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("GIT_MERGE_STRATEGY=squash\nUNRELATED=1\n", encoding="utf-8")
        assert get_settings().merge_strategy == "squash"

    def test_overrides_win_over_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DRY_RUN", "false")
        settings = get_settings({"DRY_RUN": True, "REPO_PATH": tmp_path})
        assert settings.dry_run is True
        assert settings.repo_path == tmp_path

    def test_relative_repo_path_is_resolved(self, tmp_path):
        settings = get_settings({"REPO_PATH": "sub/repo"})
        assert settings.repo_path.is_absolute()
        assert settings.repo_path == (tmp_path / "sub" / "repo").resolve()

    def test_rejects_unknown_strategy(self, monkeypatch):
        monkeypatch.setenv("GIT_MERGE_STRATEGY", "octopus")
        with pytest.raises(ValidationError):
            get_settings()

    def test_is_frozen(self):
        settings = get_settings()
        with pytest.raises(ValidationError):
            settings.dry_run = True

    def test_repository_name_falls_back_to_github_repository(self, monkeypatch):
        monkeypatch.setenv("GITHUB_REPOSITORY", "acme/api")
        assert get_settings().repository_name == "acme/api"
        monkeypatch.setenv("REPOSITORY_NAME", "api")
        assert get_settings().repository_name == "api"


class TestHostInputs:
    def test_host_flag(self):
        assert is_host_mode({"GITHUB_ACTIONS": "true"}) is True
        assert is_host_mode({"GITHUB_ACTIONS": "false"}) is False
        assert is_host_mode({}) is False

    def test_overrides_from_inputs(self):
        environ = {
            "INPUT_JIRA_URL": "https://acme.atlassian.net",
            "INPUT_SLACK_ENABLED": "true",
            "INPUT_EMAIL_TO": "",
            "JIRA_URL": "https://ignored.example.com",
        }
        assert load_host_overrides(environ) == {
            "JIRA_URL": "https://acme.atlassian.net",
            "SLACK_ENABLED": "true",
        }

    def test_branches_from_inputs(self):
        environ = {"INPUT_SOURCE_BRANCH": "develop", "INPUT_TARGET_BRANCH": "main"}
        assert load_host_branches(environ) == ("develop", "main")

    def test_missing_branches_raise(self):
        with pytest.raises(ConfigurationError, match="INPUT_SOURCE_BRANCH, INPUT_TARGET_BRANCH"):
            load_host_branches({})


def test_parse_csv():
    assert parse_csv("a, b,,c ") == ["a", "b", "c"]
    assert parse_csv("") == []
    assert parse_csv(None) == []
