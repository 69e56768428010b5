"""Data passed between pipeline stages."""
from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

UNKNOWN = "Unknown"


class MessageMode(StrEnum):
    """Output flavour of a composed message."""

    PLAIN = "plain"
    RICH = "rich"


class PipelineStage(StrEnum):
    """Stages of a single merge run, in execution order."""

    DISCOVERING = "discovering"
    EXTRACTING = "extracting"
    ENRICHING = "enriching"
    COMPOSING = "composing"
    MERGING = "merging"
    NOTIFYING = "notifying"
    DONE = "done"


class Commit(BaseModel):
    """A commit introduced by the source branch."""

    model_config = ConfigDict(frozen=True)

    hash: str
    subject: str
    body: str = ""


class IssueRecord(BaseModel):
    """Jira issue data resolved for an extracted key."""

    model_config = ConfigDict(frozen=True)

    key: str
    summary: str = UNKNOWN
    issue_type: str = UNKNOWN
    status: str = UNKNOWN
    url: str


class MergeResult(BaseModel):
    """What the merge executor ran, or would have run under dry-run."""

    source: str
    target: str
    merge_base: str
    strategy: str
    dry_run: bool
    commands: list[list[str]]
    message: str


class ChannelOutcome(BaseModel):
    """Delivery outcome for one notification channel."""

    channel: str
    delivered: bool = False
    skipped: bool = False
    error: str | None = None


class PipelineResult(BaseModel):
    """Final report of a pipeline run."""

    success: bool
    stage: PipelineStage
    issue_keys: list[str] = Field(default_factory=list)
    commit_message: str | None = None
    rich_message: str | None = None
    error: str | None = None
    merge: MergeResult | None = None
    notifications: list[ChannelOutcome] = Field(default_factory=list)
