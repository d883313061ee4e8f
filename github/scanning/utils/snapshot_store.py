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

"""Finding snapshot store – where "what each batch already reported" lives
between stateless runs.

:class:`GistSnapshotStore` keeps one private gist per batch and discovers them
through the batch issues that link them (``batchmeta`` block first, then any
gist URL in the body). Any other store only has to satisfy
:class:`SnapshotStore`.
"""

from __future__ import annotations

import json
from typing import Callable, Iterable, Protocol

from github import Github, GithubException

from shared.common import vprint, warn
from shared.github_gists import extract_gist_id, gist_create, gist_read_json_file
from shared.github_issues import gh_issue_list_by_label
from shared.models import Issue

from .batchmeta import load_batchmeta, parse_int
from .errors import SnapshotUnavailable, TrackerUnavailable
from .issue_builder import DEFAULT_TITLE_PREFIX, extract_batch_number_from_title
from .models import Batch, Snapshot, SnapshotRef, finding_set_from_resources, finding_set_to_resources


class SnapshotStore(Protocol):
    def list(self, scope_label: str) -> list[SnapshotRef]:
        """Return refs of the snapshots published under *scope_label*, oldest first."""
        ...

    def fetch(self, ref: SnapshotRef) -> Snapshot | None:
        ...

    def store(self, batch: Batch) -> SnapshotRef:
        ...


def snapshot_ref_from_issue(issue: Issue, *, title_prefix: str = DEFAULT_TITLE_PREFIX) -> SnapshotRef | None:
    meta = load_batchmeta(issue.body)
    batch_number = parse_int(meta.get("batch")) or extract_batch_number_from_title(issue.title, prefix=title_prefix)

    snapshot_id = (meta.get("snapshot_id") or "").strip()
    url = (meta.get("snapshot_url") or "").strip()
    if not snapshot_id:
        # Issues published before the batchmeta block only link the gist.
        snapshot_id = extract_gist_id(issue.body) or ""
    if not snapshot_id:
        return None
    return SnapshotRef(snapshot_id=snapshot_id, issue_number=issue.number, batch_number=batch_number, url=url)


def batch_numbers_from_issues(issues: Iterable[Issue], *, title_prefix: str = DEFAULT_TITLE_PREFIX) -> list[int]:
    numbers: list[int] = []
    for issue in issues:
        n = extract_batch_number_from_title(issue.title, prefix=title_prefix)
        if n is None:
            n = parse_int(load_batchmeta(issue.body).get("batch"))
        if n is not None:
            numbers.append(n)
    return numbers


def parse_snapshot(ref: SnapshotRef, content: str | None) -> Snapshot:
    """Decode snapshot JSON, raising :class:`SnapshotUnavailable` when unusable."""
    if not content:
        raise SnapshotUnavailable(ref.snapshot_id, "no JSON file found")
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise SnapshotUnavailable(ref.snapshot_id, f"invalid JSON ({exc.msg})") from exc
    if not isinstance(data, list):
        raise SnapshotUnavailable(ref.snapshot_id, f"expected a JSON list, got {type(data).__name__}")
    return Snapshot(ref=ref, entries=finding_set_from_resources(data))


def load_snapshots(store: SnapshotStore, refs: Iterable[SnapshotRef]) -> list[Snapshot]:
    """Fetch every ref; unreadable snapshots are logged and left out."""
    snapshots: list[Snapshot] = []
    for ref in refs:
        try:
            snapshot = store.fetch(ref)
        except SnapshotUnavailable as exc:
            warn(f"{exc} – treating its findings as unreported")
            continue
        except Exception as exc:
            warn(f"Failed to fetch snapshot {ref.snapshot_id}: {exc} – treating its findings as unreported")
            continue
        if snapshot is None:
            warn(f"Snapshot {ref.snapshot_id} returned no data – treating its findings as unreported")
            continue
        snapshots.append(snapshot)
    return snapshots


class GistSnapshotStore:
    """Snapshots as private gists, discovered through labelled batch issues."""

    def __init__(
        self,
        gh: Github,
        repo: str,
        *,
        commit: str = "",
        file_prefix: str = "terraform-resources",
        title_prefix: str = DEFAULT_TITLE_PREFIX,
        list_issues: Callable[..., dict[int, Issue] | None] = gh_issue_list_by_label,
    ) -> None:
        self._gh = gh
        self.repo = repo
        self.commit = commit
        self.file_prefix = file_prefix
        self.title_prefix = title_prefix
        self._list_issues = list_issues
        self.issues: dict[int, Issue] | None = None

    def load_issues(self, scope_label: str) -> dict[int, Issue]:
        """List batch issues in every state; a closed batch still owns its number.

        Raises :class:`TrackerUnavailable` when the listing fails. Without it
        every subject would look new and batch numbers would restart at 1.
        """
        issues = self._list_issues(self.repo, scope_label, state="all")
        if issues is None:
            raise TrackerUnavailable(self.repo, scope_label)
        self.issues = issues
        return issues

    def existing_batch_numbers(self) -> list[int]:
        if self.issues is None:
            raise RuntimeError("load_issues() must run before existing_batch_numbers()")
        return batch_numbers_from_issues(self.issues.values(), title_prefix=self.title_prefix)

    def list(self, scope_label: str) -> list[SnapshotRef]:
        issues = self.issues if self.issues is not None else self.load_issues(scope_label)

        refs: list[SnapshotRef] = []
        for number in sorted(issues):
            issue = issues[number]
            if not issue.is_open():
                continue
            ref = snapshot_ref_from_issue(issue, title_prefix=self.title_prefix)
            if ref is None:
                vprint(f"Issue #{number} links no snapshot – skipping")
                continue
            refs.append(ref)

        vprint(f"Found {len(refs)} open issue(s) with snapshots under label {scope_label!r}")
        return refs

    def fetch(self, ref: SnapshotRef) -> Snapshot:
        try:
            content = gist_read_json_file(self._gh, ref.snapshot_id)
        except GithubException as exc:
            raise SnapshotUnavailable(ref.snapshot_id, f"GitHub API error {exc.status}") from exc
        return parse_snapshot(ref, content)

    def store(self, batch: Batch) -> SnapshotRef:
        filename = f"{self.file_prefix}-batch-{batch.number}.json"
        commit_short = self.commit[:7] if self.commit else "unknown"
        description = f"Resources for {self.repo} (commit: {commit_short}) - Batch {batch.number}"
        content = json.dumps(finding_set_to_resources(batch.subjects), indent=2)

        try:
            created = gist_create(self._gh, filename, content, description)
        except GithubException as exc:
            raise SnapshotUnavailable(f"batch-{batch.number}", f"gist creation failed ({exc.status})") from exc

        print(f"Created gist {created.gist_id} for batch {batch.number}")
        return SnapshotRef(snapshot_id=created.gist_id, batch_number=batch.number, url=created.html_url)
