"""Find Jira issue keys in branch names and commit text."""
from __future__ import annotations

import re
from collections.abc import Iterable

from jira_merge.models import Commit


def build_key_regex(prefixes: Iterable[str]) -> re.Pattern[str] | None:
    """Build the issue-key regex for the given project prefixes."""
    cleaned = [prefix.strip() for prefix in prefixes if prefix.strip()]
    if not cleaned:
        return None
    alternatives = "|".join(re.escape(prefix) for prefix in cleaned)
    return re.compile(rf"(?:{alternatives})-\d+", re.IGNORECASE)


def extract_issue_keys(text: str | None, prefixes: Iterable[str]) -> list[str]:
    """Return unique uppercase issue keys found in *text*, in order of appearance."""
    regex = build_key_regex(prefixes)
    if regex is None or not text:
        return []
    return list(dict.fromkeys(match.upper() for match in regex.findall(text)))


def collect_issue_keys(
    branch: str | None,
    commits: Iterable[Commit],
    prefixes: Iterable[str],
) -> list[str]:
    """Union the keys referenced by the branch name and every commit."""
    prefix_list = list(prefixes)
    sources: list[str | None] = [branch]
    for commit in commits:
        sources.extend((commit.subject, commit.body))
    keys: dict[str, None] = {}
    for text in sources:
        for key in extract_issue_keys(text, prefix_list):
            keys.setdefault(key)
    return list(keys)
