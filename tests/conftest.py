"""Shared fixtures: an isolated environment and a settings factory."""
from __future__ import annotations

import os
from collections.abc import Callable

import pytest

from jira_merge.settings import HOST_FLAG_ENV, Settings, get_settings, settings_env_names


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Clear configuration variables and run from an empty directory."""
    for name in settings_env_names():
        monkeypatch.delenv(name, raising=False)
    for name in list(os.environ):
        if name.startswith("INPUT_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv(HOST_FLAG_ENV, raising=False)
    monkeypatch.delenv("GITHUB_OUTPUT", raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def make_settings(tmp_path) -> Callable[..., Settings]:
    """Build settings from env-style keyword overrides."""

    def factory(**overrides: object) -> Settings:
        overrides.setdefault("REPO_PATH", tmp_path)
        return get_settings(overrides)

    return factory
