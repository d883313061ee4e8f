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

"""Scan step exceptions.

Poller errors (timeout, definitive status, transport) are terminal for the
run. ``SnapshotUnavailable`` is recoverable: reconciliation treats the
snapshot as empty and carries on. ``TrackerUnavailable`` skips publishing
for the run; the scan result is still reported.
"""

from __future__ import annotations


class ScanError(Exception):
    """Root exception for the scan steps."""


class ConfigError(ScanError):
    """Step inputs are missing or invalid."""


class ScanTimeoutError(ScanError):
    def __init__(self, job_id: str, timeout_seconds: float, *, elapsed_seconds: float = 0.0, attempts: int = 0) -> None:
        super().__init__(
            f"Scan timed out after {timeout_seconds} seconds. Job ID: {job_id} "
            f"(elapsed={round(elapsed_seconds)}s, attempts={attempts})"
        )
        self.job_id = job_id
        self.timeout_seconds = timeout_seconds
        self.elapsed_seconds = elapsed_seconds
        self.attempts = attempts


class ScanStatusError(ScanError):
    """The job reached ``Failed`` or ``Cancelled``; never retried."""

    def __init__(self, status: str, job_id: str, *, elapsed_seconds: float = 0.0, attempts: int = 0) -> None:
        verb = "was cancelled" if status == "Cancelled" else "failed"
        super().__init__(
            f"Scan {verb}. Job ID: {job_id} (status={status}, "
            f"elapsed={round(elapsed_seconds)}s, attempts={attempts})"
        )
        self.status = status
        self.job_id = job_id
        self.elapsed_seconds = elapsed_seconds
        self.attempts = attempts


class TransportError(ScanError):
    """The analysis service could not be reached or answered with an error."""

    def __init__(self, message: str, *, job_id: str | None = None, attempts: int = 0) -> None:
        super().__init__(message)
        self.job_id = job_id
        self.attempts = attempts


class SnapshotUnavailable(ScanError):
    def __init__(self, snapshot_id: str, reason: str) -> None:
        super().__init__(f"Snapshot {snapshot_id} unavailable: {reason}")
        self.snapshot_id = snapshot_id
        self.reason = reason


class TrackerUnavailable(ScanError):
    """Existing batch issues could not be listed; numbering history is unknown."""

    def __init__(self, repo: str, scope_label: str) -> None:
        super().__init__(f"Could not list batch issues with label {scope_label!r} in {repo}")
        self.repo = repo
        self.scope_label = scope_label
