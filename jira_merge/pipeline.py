"""Run the full merge pipeline: discover, extract, enrich, compose, merge, notify."""
from __future__ import annotations

import time

from loguru import logger

from jira_merge.compose import MERGE_ACTION, compose_failure_message, compose_message
from jira_merge.errors import GitCommandError
from jira_merge.extract import collect_issue_keys
from jira_merge.git import execute_merge, get_commits_between_branches
from jira_merge.jira import enrich_issue_keys
from jira_merge.models import (
    ChannelOutcome,
    Commit,
    IssueRecord,
    MergeResult,
    MessageMode,
    PipelineResult,
    PipelineStage,
)
from jira_merge.notify import build_subject, dispatch_notifications
from jira_merge.settings import Settings


def log_elapsed(message: str, start: float, **fields: object) -> None:
    """Log elapsed time with additional fields."""
    elapsed = f"{time.perf_counter() - start:.2f}s"
    logger.info(
        "{message} (elapsed {elapsed})",
        message=message,
        elapsed=elapsed,
        **fields,
    )


def enter_stage(stage: PipelineStage) -> float:
    """Log a stage boundary and return its start time."""
    logger.info("Stage: {stage}", stage=stage.value)
    return time.perf_counter()


def notify(
    settings: Settings,
    source: str,
    target: str,
    message: str,
    *,
    success: bool,
    action: str,
) -> list[ChannelOutcome]:
    """Send the run outcome to every enabled channel and log the tally."""
    start = enter_stage(PipelineStage.NOTIFYING)
    subject = build_subject(action, source, target, success, settings.repository_name)
    outcomes = dispatch_notifications(settings, subject, message, success)
    log_elapsed(
        "Notifications attempted",
        start,
        delivered=sum(outcome.delivered for outcome in outcomes),
        failed=sum(outcome.error is not None for outcome in outcomes),
    )
    return outcomes


def run_pipeline(
    settings: Settings,
    source: str,
    target: str,
    *,
    action: str = MERGE_ACTION,
) -> PipelineResult:
    """Merge *source* into *target* with a Jira-derived message and notify.

    Git or filesystem failures while discovering commits or merging end the
    run: later forward stages are skipped, but a failure notification is
    still sent.
    Jira and notification problems never fail the run.
    """
    logger.info(
        "Starting {action} of {source} into {target}",
        action=action.lower(),
        source=source,
        target=target,
        repo_path=str(settings.repo_path),
        dry_run=settings.dry_run,
    )
    stage = PipelineStage.DISCOVERING
    issue_keys: list[str] = []
    commit_message: str | None = None
    rich_message: str | None = None
    merge: MergeResult | None = None
    try:
        start = enter_stage(stage)
        commits: list[Commit] = get_commits_between_branches(
            source,
            target,
            settings.repo_path,
        )
        log_elapsed("Discovered commits", start, count=len(commits))

        stage = PipelineStage.EXTRACTING
        enter_stage(stage)
        issue_keys = collect_issue_keys(source, commits, settings.project_keys)
        logger.info("Extracted issue keys: {keys}", keys=", ".join(issue_keys) or "none")

        stage = PipelineStage.ENRICHING
        start = enter_stage(stage)
        issues: list[IssueRecord] = enrich_issue_keys(settings, issue_keys)
        log_elapsed("Enriched issues", start, count=len(issues))

        stage = PipelineStage.COMPOSING
        enter_stage(stage)
        commit_message = compose_message(
            issues,
            source,
            target,
            mode=MessageMode.PLAIN,
            type_order=settings.issue_type_order,
            action=action,
        )
        rich_message = compose_message(
            issues,
            source,
            target,
            mode=MessageMode.RICH,
            type_order=settings.issue_type_order,
            action=action,
        )
        logger.info("Composed commit message:")
        logger.opt(raw=True).info("{message}\n", message=commit_message)

        stage = PipelineStage.MERGING
        start = enter_stage(stage)
        merge = execute_merge(source, target, commit_message, settings)
        log_elapsed("Merge step finished", start, dry_run=merge.dry_run)
    except (GitCommandError, OSError) as error:
        logger.error(
            "Error during {stage}: {error}",
            stage=stage.value,
            error=str(error),
        )
        notifications = notify(
            settings,
            source,
            target,
            compose_failure_message(source, target, str(error), action),
            success=False,
            action=action,
        )
        return PipelineResult(
            success=False,
            stage=stage,
            issue_keys=issue_keys,
            commit_message=commit_message,
            rich_message=rich_message,
            error=str(error),
            merge=merge,
            notifications=notifications,
        )

    notifications = notify(
        settings,
        source,
        target,
        rich_message or commit_message or "",
        success=True,
        action=action,
    )
    logger.info("{action} completed successfully", action=action)
    return PipelineResult(
        success=True,
        stage=PipelineStage.DONE,
        issue_keys=issue_keys,
        commit_message=commit_message,
        rich_message=rich_message,
        merge=merge,
        notifications=notifications,
    )
