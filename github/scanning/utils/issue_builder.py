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

"""Batch issue title / body construction, and recovering the batch number
from a previously published title.
"""

from __future__ import annotations

import re

from .batchmeta import SCHEMA_VERSION, render_batchmeta
from .models import Batch, SnapshotRef
from .templates import BATCH_BODY_TEMPLATE, render_markdown_template

DEFAULT_TITLE_PREFIX = "Averlon Misconfiguration Remediation Agent for IaC"


def build_batch_title(batch_number: int, total_batches: int, *, prefix: str = DEFAULT_TITLE_PREFIX) -> str:
    if total_batches > 1:
        return f"{prefix}: Batch {batch_number} of {total_batches}"
    return f"{prefix}: Batch {batch_number}"


def extract_batch_number_from_title(title: str | None, *, prefix: str = DEFAULT_TITLE_PREFIX) -> int | None:
    """Parse ``N`` back out of ``"<prefix>: Batch N[ of M]"``."""
    if not title:
        return None
    marker = f"{prefix}: Batch "
    idx = title.find(marker)
    if idx == -1:
        return None
    match = re.match(r"(\d+)", title[idx + len(marker):])
    if match:
        return int(match.group(1))
    return None


def _subject_table(batch: Batch) -> str:
    lines = [
        "| Resource | Type | Asset | Finding IDs |",
        "| --- | --- | --- | --- |",
    ]
    for entry in batch.subjects:
        s = entry.subject
        asset = s.asset_id or s.resource_id or "-"
        ids = ", ".join(f"`{f.id}`" for f in entry.findings)
        lines.append(f"| `{s.id or '-'}` | {s.type or '-'} | {asset} | {ids} |")
    return "\n".join(lines)


def build_batch_body(
    batch: Batch,
    *,
    scope: str,
    repo: str,
    commit: str,
    snapshot: SnapshotRef | None,
    job_id: str = "",
    workflow_run_url: str | None = None,
    step_title: str = DEFAULT_TITLE_PREFIX,
) -> str:
    batchmeta: dict[str, str] = {
        "schema": SCHEMA_VERSION,
        "scope": scope,
        "batch": str(batch.number),
        "total_batches": str(batch.total_batches),
        "repo": repo,
        "commit": commit,
    }
    if snapshot is not None:
        batchmeta["snapshot_id"] = snapshot.snapshot_id
        batchmeta["snapshot_url"] = snapshot.url
    if job_id:
        batchmeta["job_id"] = job_id

    finding_ids = batch.finding_ids()
    batch_info = f"{batch.number} of {batch.total_batches}" if batch.total_batches > 1 else str(batch.number)

    snapshot_link = ""
    if snapshot is not None and snapshot.url:
        snapshot_link = f"📎 [View Resources JSON]({snapshot.url})"

    workflow_run_note = ""
    if workflow_run_url:
        workflow_run_note = f"_Generated by [workflow run]({workflow_run_url})._"

    human = render_markdown_template(
        BATCH_BODY_TEMPLATE,
        {
            "step_title": step_title,
            "repo": repo,
            "commit": commit,
            "batch_info": batch_info,
            "finding_ids": ", ".join(f"`{i}`" for i in finding_ids) or "_none_",
            "subject_count": len(batch.subjects),
            "finding_count": len(finding_ids),
            "subject_table": _subject_table(batch),
            "snapshot_link": snapshot_link,
            "workflow_run_note": workflow_run_note,
        },
    )
    return render_batchmeta(batchmeta) + "\n\n" + human
