#
# Copyright 2026 ABSA Group Limited
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#

"""Batch issue operations via the ``gh`` CLI: list by label (any state),
create, comment, add labels, and list repository labels.

Failures are printed and reported through the return value (``None`` or
``False``); nothing here raises on a failed ``gh`` command.
"""

import json
import re
import sys
from typing import Any

from .common import run_gh
from .models import Issue

ISSUE_FIELDS = "number,state,title,body,labels"
ISSUE_URL_RE = re.compile(r"/issues/(?P<num>\d+)")


def _gh_json(args: list[str], what: str) -> Any | None:
    res = run_gh(args)
    if res.returncode != 0:
        print(f"WARN: {what} failed: {res.stderr}", file=sys.stderr)
        return None
    try:
        return json.loads(res.stdout or "[]")
    except json.JSONDecodeError:
        print(f"WARN: Could not parse {what} output: {res.stdout!r}", file=sys.stderr)
        return None


def _label_name(raw: Any) -> str:
    if isinstance(raw, dict):
        return str(raw.get("name") or "")
    return str(raw)


def _issue_from_json(obj: Any) -> Issue | None:
    if not isinstance(obj, dict):
        return None
    try:
        number = int(obj.get("number"))
    except (TypeError, ValueError):
        return None
    return Issue(
        number=number,
        state=str(obj.get("state") or ""),
        title=str(obj.get("title") or ""),
        body=str(obj.get("body") or ""),
        labels=[_label_name(lbl) for lbl in obj.get("labels") or []],
    )


def gh_issue_list_by_label(repo: str, label: str, *, state: str = "open") -> dict[int, Issue] | None:
    """Load every issue carrying *label* in one call.

    Batch numbering needs closed issues too, so callers pass ``state="all"``.
    Returns ``None`` when the listing failed, so callers can tell it apart
    from a label with no issues.
    """
    if not label:
        return {}

    args = ["issue", "list", "--repo", repo, "--label", label, "--state", state, "--json", ISSUE_FIELDS, "--limit", "5000"]
    items = _gh_json(args, f"gh issue list (label {label!r})")
    if not isinstance(items, list):
        return None

    issues: dict[int, Issue] = {}
    for obj in items:
        issue = _issue_from_json(obj)
        if issue is not None:
            issues[issue.number] = issue

    print(f"Loaded {len(issues)} {state} issues with label {label!r} from repository {repo}")
    return issues


def gh_issue_create(repo: str, title: str, body: str, labels: list[str]) -> int | None:
    """Create an issue and return its number parsed from the printed URL."""
    args = ["issue", "create", "--repo", repo, "--title", title, "--body", body]
    for label in labels:
        args += ["--label", label]

    res = run_gh(args)
    if res.returncode != 0:
        print(f"Failed to create issue: {res.stderr}", file=sys.stderr)
        return None

    matches = ISSUE_URL_RE.findall((res.stdout or "").strip())
    if not matches:
        print(f"WARN: Created issue but could not read its number from {res.stdout!r}", file=sys.stderr)
        return None
    return int(matches[-1])


def gh_issue_add_labels(repo: str, number: int, labels: list[str]) -> bool:
    if not labels:
        return True

    args = ["issue", "edit", str(number), "--repo", repo]
    for label in labels:
        args += ["--add-label", label]

    res = run_gh(args)
    if res.returncode != 0:
        # Missing labels are reported by check_labels; keep going.
        print(f"WARN: Failed to add labels {labels} to #{number}: {res.stderr}", file=sys.stderr)
        return False
    return True


def gh_issue_comment(repo: str, number: int, body: str) -> bool:
    res = run_gh(["issue", "comment", str(number), "--repo", repo, "--body", body])
    if res.returncode != 0:
        print(f"Failed to comment on #{number}: {res.stderr}", file=sys.stderr)
        return False
    return True


def gh_label_list(repo: str) -> set[str] | None:
    """Return the label names defined in *repo*, or ``None`` on failure."""
    items = _gh_json(["label", "list", "--repo", repo, "--json", "name", "--limit", "500"], f"gh label list ({repo})")
    if not isinstance(items, list):
        return None
    return {_label_name(item) for item in items}
