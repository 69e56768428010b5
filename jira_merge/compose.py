"""Render merge messages from resolved Jira issues."""
from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence

from jira_merge.models import UNKNOWN, IssueRecord, MessageMode

MERGE_ACTION = "Merge"
RELEASE_ACTION = "Release"
OTHER_GROUP = "Other"


def issue_group(issue: IssueRecord) -> str:
    """Return the group an issue is listed under."""
    if not issue.issue_type or issue.issue_type == UNKNOWN:
        return OTHER_GROUP
    return issue.issue_type


def group_issues_by_type(issues: Iterable[IssueRecord]) -> dict[str, list[IssueRecord]]:
    """Group issues by type, keeping input order within each group."""
    groups: dict[str, list[IssueRecord]] = defaultdict(list)
    for issue in issues:
        groups[issue_group(issue)].append(issue)
    return dict(groups)


def order_issue_types(types: Iterable[str], preferred: Sequence[str]) -> list[str]:
    """Order group names: preferred types first, the rest alphabetically."""
    present = set(types)
    ordered = [
        issue_type
        for issue_type in dict.fromkeys(preferred)
        if issue_type in present
    ]
    ordered.extend(sorted(present.difference(ordered)))
    return ordered


def escape_mrkdwn(text: str) -> str:
    """Escape the control characters Slack mrkdwn reserves."""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def format_heading(issue_type: str, mode: MessageMode) -> str:
    """Render an issue-type group heading."""
    if mode is MessageMode.RICH:
        return f"*{escape_mrkdwn(issue_type)}*"
    return f"## {issue_type}"


def format_issue_line(issue: IssueRecord, mode: MessageMode) -> str:
    """Render one issue as a bullet line."""
    if mode is MessageMode.RICH:
        key = f"<{issue.url}|{issue.key}>"
        summary = escape_mrkdwn(issue.summary)
    else:
        key = issue.key
        summary = issue.summary
    if issue.summary != UNKNOWN:
        return f"- {key}: {summary}"
    return f"- {key}"


def compose_message(
    issues: Sequence[IssueRecord],
    source: str,
    target: str,
    *,
    mode: MessageMode,
    type_order: Sequence[str] = (),
    action: str = MERGE_ACTION,
) -> str:
    """Compose a merge message grouping issues by type.

    The plain mode yields the git commit message; the rich mode yields Slack
    mrkdwn with bold headings and linked keys. Both are pure functions of
    their inputs.
    """
    groups = group_issues_by_type(issues)
    lines = [f"{action} {source} into {target}", ""]
    for issue_type in order_issue_types(groups, type_order):
        lines.append(format_heading(issue_type, mode))
        lines.extend(format_issue_line(issue, mode) for issue in groups[issue_type])
        lines.append("")
    return "\n".join(lines) + "\n"


def compose_failure_message(
    source: str,
    target: str,
    error: str,
    action: str = MERGE_ACTION,
) -> str:
    """Compose the notification text for a failed run."""
    verb = "release" if action == RELEASE_ACTION else "merge"
    return f"Failed to {verb} {source} into {target}: {error}"
