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

"""Scan-specific data models and their JSON (resource dict) conversions.

Subjects and findings are stored in the same shape the analysis service
returns them (``{"ID", "Type", "Name", "Asset": {...}, "Issues": [...]}``), so a
snapshot is a plain JSON list of resources.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class JobStatus(StrEnum):
    UNKNOWN = "Unknown"
    SCHEDULED = "Scheduled"
    RUNNING = "Running"
    READY = "Ready"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    CANCELLED = "Cancelled"


IN_PROGRESS_STATUSES: frozenset[str] = frozenset(
    {JobStatus.UNKNOWN, JobStatus.SCHEDULED, JobStatus.RUNNING, JobStatus.READY}
)
FAILED_STATUSES: frozenset[str] = frozenset({JobStatus.FAILED, JobStatus.CANCELLED})


@dataclass(frozen=True)
class Job:
    id: str
    submitted_at: float


@dataclass
class Finding:
    id: str
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class Subject:
    """The resource findings are attached to."""
    id: str
    type: str = ""
    name: str = ""
    asset_id: str = ""
    resource_id: str = ""
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class SubjectFindings:
    subject: Subject
    findings: list[Finding]

    def finding_ids(self) -> set[str]:
        return {f.id for f in self.findings if f.id}


# Ordered output of one successful job.
FindingSet = list[SubjectFindings]


@dataclass
class StatusResponse:
    """One ``getJobStatus`` answer; ``findings`` is only set once succeeded."""
    status: str
    findings: FindingSet | None = None


@dataclass
class PollReport:
    job_id: str
    attempts: int
    elapsed_seconds: float
    findings: FindingSet


@dataclass
class Batch:
    number: int
    subjects: list[SubjectFindings]
    total_batches: int

    def finding_ids(self) -> list[str]:
        seen: dict[str, None] = {}
        for entry in self.subjects:
            for finding in entry.findings:
                if finding.id:
                    seen.setdefault(finding.id, None)
        return list(seen)


@dataclass(frozen=True)
class SnapshotRef:
    """Locates one batch snapshot: the blob id plus the issue that links it."""
    snapshot_id: str
    issue_number: int | None = None
    batch_number: int | None = None
    url: str = ""


@dataclass
class Snapshot:
    ref: SnapshotRef
    entries: list[SubjectFindings]


@dataclass
class PublishedBatch:
    batch: Batch
    issue_number: int | None
    snapshot: SnapshotRef | None


# ---------------------------------------------------------------------------
# Resource dict conversions
# ---------------------------------------------------------------------------

def _str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def subject_findings_from_resource(resource: Any) -> SubjectFindings | None:
    """Convert one service/snapshot resource dict, or ``None`` when malformed."""
    if not isinstance(resource, dict):
        return None

    asset = resource.get("Asset")
    if not isinstance(asset, dict):
        asset = {}

    subject = Subject(
        id=_str(resource.get("ID")),
        type=_str(resource.get("Type")),
        name=_str(resource.get("Name")),
        asset_id=_str(asset.get("ID")),
        resource_id=_str(asset.get("ResourceID")),
        raw=resource,
    )

    findings: list[Finding] = []
    raw_issues = resource.get("Issues")
    if isinstance(raw_issues, list):
        for item in raw_issues:
            if not isinstance(item, dict):
                continue
            finding_id = _str(item.get("ID"))
            if finding_id:
                findings.append(Finding(id=finding_id, raw=item))

    return SubjectFindings(subject=subject, findings=findings)


def finding_set_from_resources(resources: Any) -> FindingSet:
    if not isinstance(resources, list):
        return []
    out: FindingSet = []
    for resource in resources:
        entry = subject_findings_from_resource(resource)
        if entry is not None:
            out.append(entry)
    return out


def subject_findings_to_resource(entry: SubjectFindings) -> dict[str, Any]:
    """Inverse of :func:`subject_findings_from_resource`.

    Unknown keys of the service record are kept; ``Issues`` is replaced so a
    subject narrowed to its new findings serializes only those.
    """
    resource: dict[str, Any] = dict(entry.subject.raw)
    if entry.subject.id:
        resource["ID"] = entry.subject.id
    if entry.subject.type:
        resource["Type"] = entry.subject.type
    if entry.subject.name:
        resource["Name"] = entry.subject.name

    asset = dict(resource.get("Asset") or {})
    if entry.subject.asset_id:
        asset["ID"] = entry.subject.asset_id
    if entry.subject.resource_id:
        asset["ResourceID"] = entry.subject.resource_id
    if asset:
        resource["Asset"] = asset

    resource["Issues"] = [dict(f.raw) | {"ID": f.id} for f in entry.findings]
    return resource


def finding_set_to_resources(entries: FindingSet) -> list[dict[str, Any]]:
    return [subject_findings_to_resource(e) for e in entries]
