"""Jira-aware branch merging with email and Slack notifications."""

__version__ = "0.1.0"
