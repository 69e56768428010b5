"""Git plumbing: commit discovery and merge execution."""
from __future__ import annotations

import subprocess
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from loguru import logger

from jira_merge.errors import GitCommandError
from jira_merge.models import Commit, MergeResult
from jira_merge.settings import Settings

MERGE_MESSAGE_FILE = "MERGE_MSG"
FIELD_SEPARATOR = "\x1f"
RECORD_SEPARATOR = "\x1e"
LOG_FORMAT = "--pretty=format:%H%x1f%s%x1f%b%x1e"
COMMIT_FIELDS = 3


def run_git(args: list[str], repo_path: Path) -> str:
    """Run a git command in the repository and return its stdout."""
    command = ["git", *args]
    logger.debug("Running git command", command=" ".join(command))
    try:
        completed = subprocess.run(
            command,
            cwd=repo_path,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as error:
        raise GitCommandError(command, -1, str(error)) from error
    if completed.returncode != 0:
        raise GitCommandError(
            command,
            completed.returncode,
            completed.stderr or completed.stdout,
        )
    return completed.stdout


def is_git_repository(path: Path) -> bool:
    """Return whether *path* holds a git working tree."""
    return (path / ".git").exists()


def resolve_merge_base(target: str, source: str, repo_path: Path) -> str:
    """Return the best common ancestor of the two branches."""
    return run_git(["merge-base", target, source], repo_path).strip()


def parse_log_output(output: str) -> list[Commit]:
    """Parse ``git log`` output produced with LOG_FORMAT."""
    commits: list[Commit] = []
    for record in output.split(RECORD_SEPARATOR):
        record = record.strip("\n")
        if not record.strip():
            continue
        parts = record.split(FIELD_SEPARATOR, COMMIT_FIELDS - 1)
        parts += [""] * (COMMIT_FIELDS - len(parts))
        commit_hash, subject, body = parts
        commits.append(
            Commit(hash=commit_hash.strip(), subject=subject, body=body.strip()),
        )
    return commits


def get_commits_between_branches(
    source: str,
    target: str,
    repo_path: Path,
) -> list[Commit]:
    """Return the commits on *source* that are not reachable from *target*."""
    base = resolve_merge_base(target, source, repo_path)
    output = run_git(["log", f"{base}..{source}", LOG_FORMAT], repo_path)
    return parse_log_output(output)


@contextmanager
def staged_message_file(repo_path: Path, message: str) -> Iterator[Path]:
    """Write the commit message to a file that is removed on exit."""
    path = repo_path / MERGE_MESSAGE_FILE
    path.write_text(message, encoding="utf-8")
    try:
        yield path
    finally:
        path.unlink(missing_ok=True)


def plan_merge_commands(
    source: str,
    target: str,
    strategy: str,
    message_file: Path,
) -> list[list[str]]:
    """Return the git commands that merge *source* into *target*."""
    commands = [["checkout", target]]
    if strategy == "squash":
        commands.append(["merge", "--squash", source])
        commands.append(["commit", "-F", str(message_file)])
    else:
        commands.append(["merge", "--no-ff", source, "-F", str(message_file)])
    return commands


def execute_merge(
    source: str,
    target: str,
    message: str,
    settings: Settings,
) -> MergeResult:
    """Merge *source* into *target* using *message* as the commit message.

    Under dry-run nothing in the repository changes: the merge base is
    resolved and the planned commands and message are only logged.
    """
    repo_path = settings.repo_path
    merge_base = resolve_merge_base(target, source, repo_path)
    commands = plan_merge_commands(
        source,
        target,
        settings.merge_strategy,
        repo_path / MERGE_MESSAGE_FILE,
    )
    result = MergeResult(
        source=source,
        target=target,
        merge_base=merge_base,
        strategy=settings.merge_strategy,
        dry_run=settings.dry_run,
        commands=[["git", *command] for command in commands],
        message=message,
    )
    if settings.dry_run:
        logger.info("--- DRY RUN MODE ---")
        logger.info(
            "Would merge {source} into {target} (base {base}, strategy {strategy})",
            source=source,
            target=target,
            base=merge_base,
            strategy=settings.merge_strategy,
        )
        for command in result.commands:
            logger.info("Would run: {command}", command=" ".join(command))
        logger.opt(raw=True).info("{message}\n", message=message)
        logger.info("--- END DRY RUN ---")
        return result

    checkout, *merge_steps = commands
    run_git(checkout, repo_path)
    with staged_message_file(repo_path, message):
        for command in merge_steps:
            run_git(command, repo_path)
    logger.info(
        "Merged {source} into {target}",
        source=source,
        target=target,
        strategy=settings.merge_strategy,
    )
    return result
