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

"""Batch publishing – one snapshot and one tracker issue per reconciled batch,
plus the explicit orphan-labelling flow.
"""

from __future__ import annotations

import sys

from shared.common import is_verbose, warn
from shared.github_copilot import gh_assign_copilot
from shared.github_issues import gh_issue_add_labels, gh_issue_comment, gh_issue_create

from .constants import LABEL_AVERLON_CREATED, LABEL_SEC_ADEPT_TO_CLOSE
from .errors import SnapshotUnavailable
from .issue_builder import DEFAULT_TITLE_PREFIX, build_batch_body, build_batch_title
from .models import Batch, PublishedBatch, SnapshotRef
from .snapshot_store import SnapshotStore


class BatchPublisher:
    def __init__(
        self,
        store: SnapshotStore,
        repo: str,
        scope_label: str,
        *,
        commit: str = "",
        job_id: str = "",
        workflow_run_url: str | None = None,
        title_prefix: str = DEFAULT_TITLE_PREFIX,
        dry_run: bool = False,
        auto_assign_copilot: bool = False,
    ) -> None:
        self.store = store
        self.repo = repo
        self.scope_label = scope_label
        self.commit = commit
        self.job_id = job_id
        self.workflow_run_url = workflow_run_url
        self.title_prefix = title_prefix
        self.dry_run = dry_run
        self.auto_assign_copilot = auto_assign_copilot

    @property
    def labels(self) -> list[str]:
        return [LABEL_AVERLON_CREATED, self.scope_label]

    def publish(self, batch: Batch) -> PublishedBatch:
        title = build_batch_title(batch.number, batch.total_batches, prefix=self.title_prefix)

        if self.dry_run:
            print(
                f"DRY-RUN: would create snapshot and issue for batch {batch.number} "
                f"({len(batch.subjects)} subjects, {len(batch.finding_ids())} findings) title={title!r} "
                f"labels={self.labels}"
            )
            if self.auto_assign_copilot:
                print(f"DRY-RUN: would assign Copilot to the batch {batch.number} issue")
            if is_verbose():
                print("DRY-RUN: body_preview_begin")
                print(self._body(batch, None))
                print("DRY-RUN: body_preview_end")
            return PublishedBatch(batch=batch, issue_number=None, snapshot=None)

        snapshot: SnapshotRef | None
        try:
            snapshot = self.store.store(batch)
        except SnapshotUnavailable as exc:
            # Still publish the issue; the next run re-reports these findings.
            warn(f"{exc} – publishing batch {batch.number} without a snapshot link")
            snapshot = None

        number = gh_issue_create(self.repo, title, self._body(batch, snapshot), self.labels)
        if number is None:
            print(f"ERROR: Failed to create issue for batch {batch.number}", file=sys.stderr)
            return PublishedBatch(batch=batch, issue_number=None, snapshot=snapshot)

        print(f"Created issue #{number} for batch {batch.number}")
        if self.auto_assign_copilot:
            gh_assign_copilot(self.repo, number)
        return PublishedBatch(batch=batch, issue_number=number, snapshot=snapshot)

    def publish_all(self, batches: list[Batch]) -> list[PublishedBatch]:
        """Publish every batch; a failing batch does not stop the others."""
        if not batches:
            print("No batches to publish")
            return []

        results = [self.publish(batch) for batch in batches]
        if not self.dry_run:
            failed = [r.batch.number for r in results if r.issue_number is None]
            print(f"Published {len(results) - len(failed)} of {len(results)} batch issue(s)")
            if failed:
                warn(f"Batches without an issue: {failed}")
        return results

    def label_orphans(self, orphans: list[SnapshotRef]) -> int:
        """Label batch issues whose subjects all disappeared; never closes them."""
        labelled = 0
        for ref in orphans:
            if ref.issue_number is None:
                continue
            if self.dry_run:
                print(
                    f"DRY-RUN: would add label {LABEL_SEC_ADEPT_TO_CLOSE!r} to issue #{ref.issue_number} "
                    f"(batch {ref.batch_number}) – no subject of the batch is in the current scan"
                )
                continue
            print(
                f"Adding label {LABEL_SEC_ADEPT_TO_CLOSE!r} to issue #{ref.issue_number} "
                f"(batch {ref.batch_number}) – no subject of the batch is in the current scan"
            )
            if gh_issue_add_labels(self.repo, ref.issue_number, [LABEL_SEC_ADEPT_TO_CLOSE]):
                gh_issue_comment(
                    self.repo,
                    ref.issue_number,
                    "None of the resources in this batch appear in the latest scan. "
                    "Labelled for review; close it once confirmed.",
                )
                labelled += 1
        return labelled

    def _body(self, batch: Batch, snapshot: SnapshotRef | None) -> str:
        return build_batch_body(
            batch,
            scope=self.scope_label,
            repo=self.repo,
            commit=self.commit,
            snapshot=snapshot,
            job_id=self.job_id,
            workflow_run_url=self.workflow_run_url,
            step_title=self.title_prefix,
        )
