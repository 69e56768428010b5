"""Tests for Jira enrichment."""
from __future__ import annotations

from unittest.mock import MagicMock, patch

import requests

from jira_merge.jira import browse_url, build_jql, enrich_issue_keys, fetch_jira_issues
from jira_merge.models import UNKNOWN

JIRA_URL = "https://example.atlassian.net"


def _response(status_code: int, payload: object) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    response.text = "error body"
    return response


def _issue(key: str, summary: str, issue_type: str, status: str) -> dict[str, object]:
    return {
        "key": key,
        "fields": {
            "summary": summary,
            "issuetype": {"name": issue_type},
            "status": {"name": status},
        },
    }


def _settings(make_settings, **extra):
    return make_settings(
        JIRA_URL=JIRA_URL,
        JIRA_USERNAME="bot@example.com",
        JIRA_API_TOKEN="token",
        **extra,
    )


class TestHelpers:
    def test_browse_url_strips_trailing_slash(self):
        assert browse_url(f"{JIRA_URL}/", "PROJ-1") == f"{JIRA_URL}/browse/PROJ-1"

    def test_build_jql(self):
        assert build_jql(["PROJ-1", "TEST-2"]) == "key in (PROJ-1,TEST-2)"


class TestFetchJiraIssues:
    def test_single_batched_request(self, make_settings):
        settings = _settings(make_settings)
        payload = {"issues": [_issue("PROJ-1", "Fix login", "Bug", "Done")]}
        with patch("jira_merge.jira.requests.get") as mock_get:
            mock_get.return_value = _response(200, payload)
            issues = fetch_jira_issues(settings, ["PROJ-1", "TEST-2"])

        mock_get.assert_called_once()
        call = mock_get.call_args
        assert call.args[0] == f"{JIRA_URL}/rest/api/2/search"
        assert call.kwargs["params"]["jql"] == "key in (PROJ-1,TEST-2)"
        assert call.kwargs["params"]["fields"] == "summary,issuetype,status"
        assert call.kwargs["auth"] == ("bot@example.com", "token")
        assert len(issues) == 1
        assert issues[0].summary == "Fix login"
        assert issues[0].issue_type == "Bug"
        assert issues[0].status == "Done"
        assert issues[0].url == f"{JIRA_URL}/browse/PROJ-1"

    def test_missing_nested_fields_become_unknown(self, make_settings):
        settings = _settings(make_settings)
        payload = {"issues": [{"key": "PROJ-1", "fields": {"summary": "Fix"}}]}
        with patch("jira_merge.jira.requests.get") as mock_get:
            mock_get.return_value = _response(200, payload)
            (issue,) = fetch_jira_issues(settings, ["PROJ-1"])
        assert issue.issue_type == UNKNOWN
        assert issue.status == UNKNOWN


class TestEnrichIssueKeys:
    def test_empty_keys_make_no_request(self, make_settings):
        with patch("jira_merge.jira.requests.get") as mock_get:
            assert enrich_issue_keys(_settings(make_settings), []) == []
        mock_get.assert_not_called()

    def test_missing_credentials_fall_back_without_request(self, make_settings):
        settings = make_settings(JIRA_URL=JIRA_URL)
        with patch("jira_merge.jira.requests.get") as mock_get:
            issues = enrich_issue_keys(settings, ["PROJ-42", "TEST-7"])
        mock_get.assert_not_called()
        assert [issue.key for issue in issues] == ["PROJ-42", "TEST-7"]
        for issue in issues:
            assert issue.summary == UNKNOWN
            assert issue.issue_type == UNKNOWN
            assert issue.status == UNKNOWN
            assert issue.url == f"{JIRA_URL}/browse/{issue.key}"

    def test_http_error_falls_back(self, make_settings):
        with patch("jira_merge.jira.requests.get") as mock_get:
            mock_get.return_value = _response(401, {})
            issues = enrich_issue_keys(_settings(make_settings), ["PROJ-1"])
        assert len(issues) == 1
        assert issues[0].summary == UNKNOWN

    def test_network_error_falls_back(self, make_settings):
        with patch("jira_merge.jira.requests.get") as mock_get:
            mock_get.side_effect = requests.ConnectionError("unreachable")
            issues = enrich_issue_keys(_settings(make_settings), ["PROJ-1", "TEST-2"])
        assert [issue.key for issue in issues] == ["PROJ-1", "TEST-2"]
        assert {issue.issue_type for issue in issues} == {UNKNOWN}

    def test_malformed_payload_falls_back(self, make_settings):
        with patch("jira_merge.jira.requests.get") as mock_get:
            mock_get.return_value = _response(200, {"issues": "nope"})
            issues = enrich_issue_keys(_settings(make_settings), ["PROJ-1"])
        assert issues[0].summary == UNKNOWN

    def test_success_follows_response_order(self, make_settings):
        payload = {
            "issues": [
                _issue("TEST-2", "Add docs", "Task", "In Progress"),
                _issue("PROJ-1", "Fix login", "Bug", "Done"),
            ],
        }
        with patch("jira_merge.jira.requests.get") as mock_get:
            mock_get.return_value = _response(200, payload)
            issues = enrich_issue_keys(_settings(make_settings), ["PROJ-1", "TEST-2"])
        mock_get.assert_called_once()
        assert [issue.key for issue in issues] == ["TEST-2", "PROJ-1"]

    def test_keys_not_returned_are_absent(self, make_settings):
        payload = {"issues": [_issue("PROJ-1", "Fix login", "Bug", "Done")]}
        with patch("jira_merge.jira.requests.get") as mock_get:
            mock_get.return_value = _response(200, payload)
            issues = enrich_issue_keys(_settings(make_settings), ["PROJ-1", "PROJ-99"])
        assert [issue.key for issue in issues] == ["PROJ-1"]
