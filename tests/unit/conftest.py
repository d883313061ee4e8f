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

"""Shared fixtures: resource/finding builders, a fake clock and an in-memory snapshot store."""

from __future__ import annotations

from typing import Any, Callable

import pytest

from shared.common import set_verbose_enabled
from scanning.utils.errors import SnapshotUnavailable
from scanning.utils.models import Batch, Snapshot, SnapshotRef, SubjectFindings, subject_findings_from_resource


def resource(subject_id: str, finding_ids: list[str], *, asset_id: str = "", resource_id: str = "") -> dict[str, Any]:
    res: dict[str, Any] = {
        "ID": subject_id,
        "Type": "aws_s3_bucket",
        "Name": subject_id.rsplit(".", 1)[-1],
        "Issues": [{"ID": i, "Title": f"issue {i}"} for i in finding_ids],
    }
    if asset_id or resource_id:
        res["Asset"] = {"ID": asset_id, "ResourceID": resource_id}
    return res


def entry(subject_id: str, finding_ids: list[str], **kwargs: str) -> SubjectFindings:
    converted = subject_findings_from_resource(resource(subject_id, finding_ids, **kwargs))
    assert converted is not None
    return converted


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


class RecordingSleep:
    """Records requested delays and advances the paired clock by them."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.delays: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        self.clock.now += seconds


class InMemorySnapshotStore:
    def __init__(self) -> None:
        self.snapshots: dict[str, Snapshot] = {}
        self.refs: list[SnapshotRef] = []
        self.fail_store = False
        self.fetch_errors: dict[str, Exception] = {}

    def list(self, scope_label: str) -> list[SnapshotRef]:
        return list(self.refs)

    def fetch(self, ref: SnapshotRef) -> Snapshot | None:
        if ref.snapshot_id in self.fetch_errors:
            raise self.fetch_errors[ref.snapshot_id]
        stored = self.snapshots.get(ref.snapshot_id)
        if stored is None:
            return None
        return Snapshot(ref=ref, entries=list(stored.entries))

    def store(self, batch: Batch) -> SnapshotRef:
        if self.fail_store:
            raise SnapshotUnavailable(f"batch-{batch.number}", "store disabled")
        ref = SnapshotRef(
            snapshot_id=f"snap{batch.number}",
            batch_number=batch.number,
            url=f"https://gist.github.com/snap{batch.number}",
        )
        self.snapshots[ref.snapshot_id] = Snapshot(ref=ref, entries=list(batch.subjects))
        self.refs.append(ref)
        return ref


@pytest.fixture(autouse=True)
def _quiet_verbose() -> None:
    set_verbose_enabled(False)


@pytest.fixture
def make_entry() -> Callable[..., SubjectFindings]:
    return entry


@pytest.fixture
def make_resource() -> Callable[..., dict[str, Any]]:
    return resource


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeper(clock: FakeClock) -> RecordingSleep:
    return RecordingSleep(clock)


@pytest.fixture
def memory_store() -> InMemorySnapshotStore:
    return InMemorySnapshotStore()
