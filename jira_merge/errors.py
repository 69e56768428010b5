"""Exception types raised across the merge pipeline."""
from __future__ import annotations


class GitCommandError(RuntimeError):
    """Raised when a git command exits non-zero or cannot be started."""

    def __init__(self, command: list[str], returncode: int, stderr: str) -> None:
        """Create a git command error."""
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip() or "no output"
        super().__init__(
            f"git command failed ({' '.join(command)}) [exit {returncode}]: {detail}",
        )


class JiraRequestError(RuntimeError):
    """Raised when a Jira search request fails."""

    def __init__(self, status_code: int, text: str) -> None:
        """Create a Jira request error."""
        self.status_code = status_code
        super().__init__(f"Jira request failed ({status_code}): {text}")


class SlackWebhookError(RuntimeError):
    """Raised when a Slack webhook call fails."""

    def __init__(self, status_code: int, text: str) -> None:
        """Create a Slack webhook error."""
        self.status_code = status_code
        super().__init__(f"Slack webhook failed ({status_code}): {text}")


class ConfigurationError(RuntimeError):
    """Raised when required run inputs are missing or invalid."""
