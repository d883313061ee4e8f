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

"""Batch reconciliation – decides which subjects of a fresh finding set are
worth publishing given every previously published batch snapshot, and slices
them into numbered batches.

Matching is by subject key (asset id, then resource id, then the subject's
own id). A known subject is only re-published with findings whose IDs were
never reported before; a subject whose finding set shrank or stayed the same
is skipped. Closing issues is not decided here; see :func:`find_orphan_batches`.

Reconciliation never raises on malformed input. Missing snapshots make their
subjects look new again, which re-reports rather than drops.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from shared.common import vprint

from .models import Batch, FindingSet, Snapshot, SnapshotRef, Subject, SubjectFindings

BATCH_SIZE = 10
DEFAULT_FALLBACK_SCHEME = "terraform"


def subject_key(subject: Subject, *, fallback_scheme: str = DEFAULT_FALLBACK_SCHEME) -> str:
    if subject.asset_id:
        return f"asset:{subject.asset_id}"
    if subject.resource_id:
        return f"resource:{subject.resource_id}"
    return f"{fallback_scheme}:{subject.id}"


@dataclass
class PriorSubject:
    subject: Subject
    finding_ids: set[str] = field(default_factory=set)
    snapshot: SnapshotRef | None = None


def build_prior_index(
    snapshots: Iterable[Snapshot | None],
    *,
    fallback_scheme: str = DEFAULT_FALLBACK_SCHEME,
) -> dict[str, PriorSubject]:
    """Merge snapshots (oldest first) into ``subject_key -> PriorSubject``.

    Finding IDs are unioned across snapshots; the subject record and snapshot
    reference come from the latest snapshot mentioning the key.
    """
    index: dict[str, PriorSubject] = {}
    for snapshot in snapshots:
        if snapshot is None:
            continue
        for entry in snapshot.entries or []:
            if not isinstance(entry, SubjectFindings):
                continue
            key = subject_key(entry.subject, fallback_scheme=fallback_scheme)
            existing = index.get(key)
            if existing is None:
                index[key] = PriorSubject(subject=entry.subject, finding_ids=entry.finding_ids(), snapshot=snapshot.ref)
                continue
            existing.finding_ids |= entry.finding_ids()
            existing.subject = entry.subject
            existing.snapshot = snapshot.ref
    return index


def select_new_findings(
    current: FindingSet,
    prior_index: dict[str, PriorSubject],
    *,
    fallback_scheme: str = DEFAULT_FALLBACK_SCHEME,
) -> list[SubjectFindings]:
    """Return the subjects of *current* that carry at least one unreported finding."""
    selected: list[SubjectFindings] = []
    skipped = 0

    for entry in current or []:
        if not isinstance(entry, SubjectFindings) or not entry.findings:
            continue

        key = subject_key(entry.subject, fallback_scheme=fallback_scheme)
        prior = prior_index.get(key)
        if prior is None:
            selected.append(entry)
            continue

        current_ids = entry.finding_ids()
        new_ids = current_ids - prior.finding_ids
        if new_ids:
            print(f"Subject {key} has {len(new_ids)} new finding(s) (IDs: {', '.join(sorted(new_ids))})")
            selected.append(
                SubjectFindings(
                    subject=entry.subject,
                    findings=[f for f in entry.findings if f.id in new_ids],
                )
            )
        else:
            # A shrinking finding set is not actionable here.
            vprint(
                f"Subject {key} has no new findings "
                f"(previously: {len(prior.finding_ids)}, current: {len(current_ids)}) – skipping"
            )
            skipped += 1

    if skipped:
        print(f"Skipping {skipped} subject(s) with no new findings")
    return selected


def make_batches(
    subjects: list[SubjectFindings],
    existing_batch_numbers: Iterable[int],
    *,
    batch_size: int = BATCH_SIZE,
) -> list[Batch]:
    if batch_size <= 0:
        raise ValueError(f"batch size must be positive, got {batch_size!r}")
    if not subjects:
        return []

    ordered = sorted(subjects, key=lambda e: e.subject.id)
    max_existing = max((n for n in existing_batch_numbers if isinstance(n, int) and n > 0), default=0)

    chunks = [ordered[i:i + batch_size] for i in range(0, len(ordered), batch_size)]
    total = len(chunks) + max_existing
    return [
        Batch(number=max_existing + 1 + offset, subjects=chunk, total_batches=total)
        for offset, chunk in enumerate(chunks)
    ]


def reconcile(
    current: FindingSet,
    prior_snapshots: Iterable[Snapshot | None],
    existing_batch_numbers: Iterable[int] = (),
    *,
    batch_size: int = BATCH_SIZE,
    fallback_scheme: str = DEFAULT_FALLBACK_SCHEME,
) -> list[Batch]:
    """Compute the batches to publish for *current*.

    *existing_batch_numbers* are the numbers already used in this scope; when
    omitted, the batch numbers recorded on the snapshot references are used.
    """
    snapshots = [s for s in prior_snapshots or [] if s is not None]
    numbers = list(existing_batch_numbers or [])
    if not numbers:
        numbers = [s.ref.batch_number for s in snapshots if s.ref.batch_number is not None]

    with_findings = [e for e in current or [] if isinstance(e, SubjectFindings) and e.findings]
    if not snapshots:
        print("No existing snapshots found, all subjects with findings are new")
        selected = with_findings
    else:
        index = build_prior_index(snapshots, fallback_scheme=fallback_scheme)
        vprint(f"Found {len(index)} unique subject(s) in {len(snapshots)} existing snapshot(s)")
        selected = select_new_findings(with_findings, index, fallback_scheme=fallback_scheme)

    if not selected:
        print("No subjects with new findings. No new batches needed.")
        return []

    batches = make_batches(selected, numbers, batch_size=batch_size)
    print(
        f"Reconciled {len(selected)} subject(s) into {len(batches)} batch(es) "
        f"(starting from batch {batches[0].number})"
    )
    return batches


def find_orphan_batches(
    current: FindingSet,
    snapshots: Iterable[Snapshot | None],
    *,
    fallback_scheme: str = DEFAULT_FALLBACK_SCHEME,
) -> list[SnapshotRef]:
    """Return snapshot refs none of whose subjects appear in *current* at all.

    Presence is by subject key regardless of finding count, so a subject with
    fewer findings than before never makes its batch an orphan. Snapshots
    with no readable entries are never reported.
    """
    present = {
        subject_key(e.subject, fallback_scheme=fallback_scheme)
        for e in current or []
        if isinstance(e, SubjectFindings)
    }

    orphans: list[SnapshotRef] = []
    for snapshot in snapshots:
        if snapshot is None or not snapshot.entries:
            continue
        keys = {subject_key(e.subject, fallback_scheme=fallback_scheme) for e in snapshot.entries}
        if keys.isdisjoint(present):
            orphans.append(snapshot.ref)
        elif not keys <= present:
            vprint(f"Snapshot {snapshot.ref.snapshot_id} is partially stale; keeping its issue open")
    return orphans
