"""Resolve issue keys to Jira summaries, types and statuses."""
from __future__ import annotations

import time
from collections.abc import Sequence
from typing import cast

import requests
from loguru import logger

from jira_merge.errors import JiraRequestError
from jira_merge.models import UNKNOWN, IssueRecord
from jira_merge.settings import Settings

JSONDict = dict[str, object]
JSONList = list[object]
HTTP_ERROR_THRESHOLD = 400
JIRA_SEARCH_PATH = "/rest/api/2/search"
JIRA_SEARCH_FIELDS = "summary,issuetype,status"
JIRA_TIMEOUT_SECONDS = 30


def ensure_dict(value: object, _context: str) -> JSONDict:
    """Return a dictionary value or raise."""
    if isinstance(value, dict):
        return cast("JSONDict", value)
    raise TypeError


def ensure_list(value: object, _context: str) -> JSONList:
    """Return a list value or raise."""
    if isinstance(value, list):
        return cast("JSONList", value)
    raise TypeError


def ensure_str(value: object, _context: str, default: str = "") -> str:
    """Return a string value or a default."""
    if isinstance(value, str):
        return value
    if value is None:
        return default
    raise TypeError


def browse_url(jira_url: str, key: str) -> str:
    """Return the Jira browse URL for an issue key."""
    return f"{jira_url.rstrip('/')}/browse/{key}"


def make_unknown_issue(key: str, jira_url: str) -> IssueRecord:
    """Return a placeholder record for an issue that could not be resolved."""
    return IssueRecord(
        key=key,
        summary=UNKNOWN,
        issue_type=UNKNOWN,
        status=UNKNOWN,
        url=browse_url(jira_url, key),
    )


def build_jql(keys: Sequence[str]) -> str:
    """Build the batched JQL query for a set of keys."""
    return f"key in ({','.join(keys)})"


def nested_name(fields: JSONDict, field: str) -> str:
    """Return ``fields[field].name`` or the unknown sentinel."""
    container = fields.get(field)
    if container is None:
        return UNKNOWN
    name = ensure_str(ensure_dict(container, field).get("name"), f"{field}.name")
    return name or UNKNOWN


def parse_issue(issue: object, jira_url: str) -> IssueRecord:
    """Parse an IssueRecord from a Jira search result entry."""
    issue_dict = ensure_dict(issue, "issue")
    key = ensure_str(issue_dict.get("key"), "issue.key")
    if not key:
        raise ValueError("Jira issue without a key")
    fields = ensure_dict(issue_dict.get("fields") or {}, "issue.fields")
    return IssueRecord(
        key=key.upper(),
        summary=ensure_str(fields.get("summary"), "fields.summary") or UNKNOWN,
        issue_type=nested_name(fields, "issuetype"),
        status=nested_name(fields, "status"),
        url=browse_url(jira_url, key.upper()),
    )


def fetch_jira_issues(settings: Settings, keys: Sequence[str]) -> list[IssueRecord]:
    """Fetch all issues in one batched Jira search."""
    if not keys:
        return []
    response = requests.get(
        f"{settings.jira_url.rstrip('/')}{JIRA_SEARCH_PATH}",
        params={
            "jql": build_jql(keys),
            "fields": JIRA_SEARCH_FIELDS,
            "maxResults": len(keys),
        },
        auth=(settings.jira_username or "", settings.jira_api_token or ""),
        headers={"Accept": "application/json"},
        timeout=JIRA_TIMEOUT_SECONDS,
    )
    if response.status_code >= HTTP_ERROR_THRESHOLD:
        raise JiraRequestError(response.status_code, response.text)
    payload = ensure_dict(response.json(), "Jira search response")
    issues = ensure_list(payload.get("issues") or [], "issues")
    return [parse_issue(issue, settings.jira_url) for issue in issues]


def enrich_issue_keys(settings: Settings, keys: Sequence[str]) -> list[IssueRecord]:
    """Resolve keys to issue records, degrading to placeholders on any failure.

    Never raises. Without credentials, or when the search fails, every key
    gets an ``Unknown`` record with a browse URL. On success the records
    follow the search response order; keys Jira does not return are omitted.
    """
    if not keys:
        return []
    fallback = [make_unknown_issue(key, settings.jira_url) for key in keys]
    if not settings.has_jira_credentials:
        logger.info("Jira credentials not configured, skipping enrichment")
        return fallback
    start = time.perf_counter()
    try:
        issues = fetch_jira_issues(settings, keys)
    except (requests.RequestException, JiraRequestError) as error:
        logger.warning("Error fetching Jira issues: {error}", error=str(error))
        return fallback
    except (TypeError, ValueError, KeyError) as error:
        logger.warning(
            "Unexpected Jira search response: {error}",
            error=repr(error),
        )
        return fallback
    logger.info(
        "Fetched Jira issues",
        requested=len(keys),
        returned=len(issues),
        elapsed=f"{time.perf_counter() - start:.2f}s",
    )
    return issues
