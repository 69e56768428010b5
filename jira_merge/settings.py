"""Environment-backed configuration for a merge run."""
from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from jira_merge.errors import ConfigurationError

DEFAULT_PROJECT_KEYS = "PROJ,TEST"
DEFAULT_JIRA_URL = "https://your-domain.atlassian.net"
HOST_FLAG_ENV = "GITHUB_ACTIONS"
HOST_INPUT_PREFIX = "INPUT_"
SOURCE_BRANCH_INPUT = "SOURCE_BRANCH"
TARGET_BRANCH_INPUT = "TARGET_BRANCH"


class Settings(BaseSettings):
    """Read-only settings assembled once at process start."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    merge_strategy: Literal["merge", "squash"] = Field(
        default="merge",
        alias="GIT_MERGE_STRATEGY",
    )
    dry_run: bool = Field(default=False, alias="DRY_RUN")
    repo_path: Path = Field(default_factory=Path.cwd, alias="REPO_PATH")

    jira_project_keys: str = Field(
        default=DEFAULT_PROJECT_KEYS,
        alias="JIRA_PROJECT_KEYS",
    )
    jira_url: str = Field(default=DEFAULT_JIRA_URL, alias="JIRA_URL")
    jira_username: str | None = Field(default=None, alias="JIRA_USERNAME")
    jira_api_token: str | None = Field(default=None, alias="JIRA_API_TOKEN")
    jira_issue_type_order: str = Field(default="", alias="JIRA_ISSUE_TYPE_ORDER")

    email_enabled: bool = Field(default=False, alias="EMAIL_ENABLED")
    email_from: str = Field(default="build@yourcompany.com", alias="EMAIL_FROM")
    email_to: str = Field(default="team@yourcompany.com", alias="EMAIL_TO")
    smtp_host: str = Field(default="smtp.yourcompany.com", alias="SMTP_HOST")
    smtp_port: int = Field(default=587, alias="SMTP_PORT")
    smtp_user: str | None = Field(default=None, alias="SMTP_USER")
    smtp_pass: str | None = Field(default=None, alias="SMTP_PASS")

    slack_enabled: bool = Field(default=False, alias="SLACK_ENABLED")
    slack_webhook_url: str | None = Field(default=None, alias="SLACK_WEBHOOK_URL")
    slack_channel: str = Field(default="#builds", alias="SLACK_CHANNEL")

    repository_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices("REPOSITORY_NAME", "GITHUB_REPOSITORY"),
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator("repo_path")
    @classmethod
    def resolve_repo_path(cls, value: Path) -> Path:
        """Anchor the repository path so git can run from inside it."""
        return value.expanduser().resolve()

    @property
    def project_keys(self) -> list[str]:
        """Recognized Jira project prefixes."""
        return parse_csv(self.jira_project_keys)

    @property
    def issue_type_order(self) -> list[str]:
        """Preferred issue-type group order."""
        return parse_csv(self.jira_issue_type_order)

    @property
    def email_recipients(self) -> list[str]:
        """Email notification recipients."""
        return parse_csv(self.email_to)

    @property
    def has_jira_credentials(self) -> bool:
        """Whether Jira enrichment can be attempted."""
        return bool(self.jira_username and self.jira_api_token)


def parse_csv(value: str | None) -> list[str]:
    """Split a comma-separated setting into trimmed, non-empty items."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def get_settings(overrides: Mapping[str, object] | None = None) -> Settings:
    """Load settings from the environment, applying explicit overrides.

    Override keys are the environment variable names (e.g. ``DRY_RUN``);
    they take precedence over the environment and ``.env``.
    """
    return Settings(**dict(overrides or {}))


def is_host_mode(environ: Mapping[str, str] | None = None) -> bool:
    """Return whether the process was started by an automation host."""
    env = os.environ if environ is None else environ
    return env.get(HOST_FLAG_ENV, "").strip().lower() == "true"


def settings_env_names() -> list[str]:
    """Return the environment variable name of every settings field."""
    names: list[str] = []
    for field in Settings.model_fields.values():
        if isinstance(field.validation_alias, AliasChoices):
            names.extend(
                choice
                for choice in field.validation_alias.choices
                if isinstance(choice, str)
            )
        elif field.alias:
            names.append(field.alias)
    return names


def read_host_input(name: str, environ: Mapping[str, str] | None = None) -> str:
    """Return a host-provided input value, or an empty string."""
    env = os.environ if environ is None else environ
    return env.get(f"{HOST_INPUT_PREFIX}{name}", "").strip()


def load_host_overrides(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Collect configuration values provided as host inputs."""
    overrides: dict[str, str] = {}
    for name in settings_env_names():
        value = read_host_input(name, environ)
        if value:
            overrides[name] = value
    return overrides


def load_host_branches(environ: Mapping[str, str] | None = None) -> tuple[str, str]:
    """Return the source and target branches provided by the host."""
    source = read_host_input(SOURCE_BRANCH_INPUT, environ)
    target = read_host_input(TARGET_BRANCH_INPUT, environ)
    missing = [
        f"{HOST_INPUT_PREFIX}{name}"
        for name, value in ((SOURCE_BRANCH_INPUT, source), (TARGET_BRANCH_INPUT, target))
        if not value
    ]
    if missing:
        message = f"Missing required host inputs: {', '.join(missing)}"
        raise ConfigurationError(message)
    return source, target
