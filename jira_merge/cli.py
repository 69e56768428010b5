"""Command-line and GitHub Actions entry points."""
from __future__ import annotations

import argparse
import json
import os
import sys
import uuid
from collections.abc import Mapping
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger
from pydantic import ValidationError

from jira_merge.compose import MERGE_ACTION, RELEASE_ACTION
from jira_merge.errors import ConfigurationError
from jira_merge.git import is_git_repository
from jira_merge.models import PipelineResult
from jira_merge.pipeline import run_pipeline
from jira_merge.settings import (
    Settings,
    get_settings,
    is_host_mode,
    load_host_branches,
    load_host_overrides,
)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="jira-merge",
        description=(
            "Merge a branch with a commit message built from the Jira issues "
            "its commits reference, then notify by email and Slack."
        ),
    )
    parser.add_argument(
        "--dry-run",
        "-d",
        action="store_true",
        help="Run without performing any actual merges",
    )
    parser.add_argument(
        "--repo-path",
        "-r",
        type=Path,
        help="Path to the git repository (default: current directory)",
    )
    parser.add_argument("source_branch", nargs="?", help="Branch to merge from")
    parser.add_argument("target_branch", nargs="?", help="Branch to merge into")
    return parser


def configure_logging(level: str) -> None:
    """Send log output to stderr at the configured level."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def write_host_outputs(
    outputs: Mapping[str, str],
    environ: Mapping[str, str] | None = None,
) -> None:
    """Report outputs to the automation host.

    Values are appended to the ``$GITHUB_OUTPUT`` file using the multi-line
    delimiter syntax, or printed as JSON when no output file is provided.
    """
    env = os.environ if environ is None else environ
    output_path = env.get("GITHUB_OUTPUT")
    if not output_path:
        print(json.dumps(dict(outputs), indent=2))
        return
    with open(output_path, "a", encoding="utf-8") as handle:
        for name, value in outputs.items():
            delimiter = f"ghadelimiter_{uuid.uuid4().hex}"
            handle.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")


def host_outputs(result: PipelineResult) -> dict[str, str]:
    """Build the structured outputs for a finished run."""
    outputs = {
        "success": "true" if result.success else "false",
        "issue_keys": json.dumps(result.issue_keys),
    }
    if result.success:
        outputs["commit_message"] = result.commit_message or ""
    else:
        outputs["error_message"] = result.error or "Unknown error"
    return outputs


def check_repository(settings: Settings) -> bool:
    """Log an error and return False unless the repo path is a git repository."""
    if is_git_repository(settings.repo_path):
        return True
    logger.error(
        "Error: {path} is not a git repository or the path doesn't exist.",
        path=str(settings.repo_path),
    )
    return False


def run_cli(argv: list[str] | None = None) -> int:
    """Run the merge from command-line arguments."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.source_branch or not args.target_branch:
        parser.print_help(sys.stdout)
        return EXIT_FAILURE

    overrides: dict[str, object] = {}
    if args.dry_run:
        overrides["DRY_RUN"] = True
    if args.repo_path is not None:
        overrides["REPO_PATH"] = args.repo_path
    try:
        settings = get_settings(overrides)
    except ValidationError as error:
        logger.error("Invalid configuration: {error}", error=str(error))
        return EXIT_FAILURE
    configure_logging(settings.log_level)
    if settings.dry_run:
        logger.info("Dry run mode enabled")
    if not check_repository(settings):
        return EXIT_FAILURE

    result = run_pipeline(
        settings,
        args.source_branch,
        args.target_branch,
        action=MERGE_ACTION,
    )
    return EXIT_SUCCESS if result.success else EXIT_FAILURE


def run_host(environ: Mapping[str, str] | None = None) -> int:
    """Run the release using inputs provided by the automation host."""
    try:
        source, target = load_host_branches(environ)
        settings = get_settings(load_host_overrides(environ))
    except (ConfigurationError, ValidationError) as error:
        logger.error("Configuration error: {error}", error=str(error))
        write_host_outputs(
            {"success": "false", "issue_keys": "[]", "error_message": str(error)},
            environ,
        )
        return EXIT_FAILURE
    configure_logging(settings.log_level)
    if not check_repository(settings):
        write_host_outputs(
            {
                "success": "false",
                "issue_keys": "[]",
                "error_message": f"{settings.repo_path} is not a git repository",
            },
            environ,
        )
        return EXIT_FAILURE

    result = run_pipeline(settings, source, target, action=RELEASE_ACTION)
    write_host_outputs(host_outputs(result), environ)
    return EXIT_SUCCESS if result.success else EXIT_FAILURE


def main(argv: list[str] | None = None) -> int:
    """Dispatch to host-triggered or command-line mode."""
    load_dotenv()
    if is_host_mode():
        return run_host()
    return run_cli(argv)


if __name__ == "__main__":
    sys.exit(main())
