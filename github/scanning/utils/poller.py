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

"""Job polling – submits one remote analysis job and polls its status with
bounded exponential backoff until a terminal status or the timeout.

Outcomes:

- ``Succeeded``            -> the attached finding set is returned
- ``Failed`` / ``Cancelled`` -> :class:`ScanStatusError`, never retried
- any other status         -> still in progress, keep polling
- status call raises       -> :class:`TransportError`, never retried
- timeout elapsed          -> :class:`ScanTimeoutError`, checked before each call

Backoff: after poll attempts 1-3 the multiplier becomes 1.05, 1.10, 1.15;
afterwards it grows by 1.5x per attempt, capped at 5x the poll interval.
"""

from __future__ import annotations

import sys
import time
from typing import Callable

from shared.common import vprint

from .errors import ScanError, ScanStatusError, ScanTimeoutError, TransportError
from .models import FAILED_STATUSES, IN_PROGRESS_STATUSES, FindingSet, Job, JobStatus, PollReport, StatusResponse

INITIAL_BACKOFF_MULTIPLIERS: tuple[float, ...] = (1.05, 1.10, 1.15)
BACKOFF_FACTOR = 1.5
MAX_BACKOFF_MULTIPLIER = 5.0

SubmitFn = Callable[[], "Job | str"]
FetchStatusFn = Callable[[Job], StatusResponse]


def next_backoff_multiplier(attempt: int, current: float) -> float:
    """Return the multiplier to use after poll *attempt* (1-based)."""
    if attempt <= len(INITIAL_BACKOFF_MULTIPLIERS):
        return INITIAL_BACKOFF_MULTIPLIERS[attempt - 1]
    return min(current * BACKOFF_FACTOR, MAX_BACKOFF_MULTIPLIER)


class JobPoller:
    """Drives a single remote job to completion.

    *clock* and *sleep* are injectable; the timeout is measured against
    *clock* from the moment the job is submitted.
    """

    def __init__(
        self,
        poll_interval_seconds: float,
        timeout_seconds: float,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        label: str = "Scan",
    ) -> None:
        if poll_interval_seconds <= 0:
            raise ValueError(f"poll interval must be positive, got {poll_interval_seconds!r}")
        if timeout_seconds <= 0:
            raise ValueError(f"timeout must be positive, got {timeout_seconds!r}")
        self.poll_interval_seconds = poll_interval_seconds
        self.timeout_seconds = timeout_seconds
        self._sleep = sleep
        self._clock = clock
        self._label = label

    def _submit(self, submit: SubmitFn) -> Job:
        print(f"Initiating {self._label.lower()}...")
        try:
            submitted = submit()
        except ScanError:
            raise
        except Exception as exc:
            raise TransportError(f"Failed to submit {self._label.lower()} job: {exc}") from exc

        if isinstance(submitted, Job):
            return submitted
        job_id = str(submitted or "").strip()
        if not job_id:
            raise TransportError(f"{self._label} submission returned no job id")
        return Job(id=job_id, submitted_at=self._clock())

    def run(self, submit: SubmitFn, fetch_status: FetchStatusFn) -> PollReport:
        job = self._submit(submit)
        print(f"✓ {self._label} started with Job ID: {job.id}")
        print(
            f"Polling for results with exponential backoff (base interval: {self.poll_interval_seconds}s, "
            f"timeout: {self.timeout_seconds}s)..."
        )

        attempts = 0
        multiplier = 1.0

        while True:
            attempts += 1
            elapsed = self._clock() - job.submitted_at

            if elapsed > self.timeout_seconds:
                print(
                    f"ERROR: {self._label} exceeded timeout after {round(elapsed)}s "
                    f"(limit: {self.timeout_seconds}s, attempts: {attempts - 1}, job: {job.id})",
                    file=sys.stderr,
                )
                raise ScanTimeoutError(job.id, self.timeout_seconds, elapsed_seconds=elapsed, attempts=attempts - 1)

            print(f"Polling attempt {attempts}: checking status for Job ID: {job.id}...")
            try:
                response = fetch_status(job)
            except Exception as exc:
                print(
                    f"ERROR: status check failed (attempt {attempts}, elapsed {round(elapsed)}s, job {job.id}): {exc}",
                    file=sys.stderr,
                )
                raise TransportError(
                    f"Failed to check {self._label.lower()} status for Job ID {job.id}: {exc}",
                    job_id=job.id,
                    attempts=attempts,
                ) from exc

            status = str(response.status or "")
            print(f"{self._label} status: {status or '<empty>'}")

            if status == JobStatus.SUCCEEDED:
                elapsed = self._clock() - job.submitted_at
                print(
                    f"✓ {self._label} completed successfully after {round(elapsed)} seconds "
                    f"and {attempts} polling attempts (job {job.id})"
                )
                findings: FindingSet = list(response.findings or [])
                if response.findings is None:
                    print(f"WARN: {self._label} completed but no result data was returned", file=sys.stderr)
                else:
                    vprint(f"Result carries {len(findings)} subject(s)")
                return PollReport(job_id=job.id, attempts=attempts, elapsed_seconds=elapsed, findings=findings)

            if status in FAILED_STATUSES:
                elapsed = self._clock() - job.submitted_at
                print(
                    f"ERROR: {self._label} ended with definitive status {status} "
                    f"after {round(elapsed)}s and {attempts} attempts (job {job.id})",
                    file=sys.stderr,
                )
                raise ScanStatusError(status, job.id, elapsed_seconds=elapsed, attempts=attempts)

            if status not in IN_PROGRESS_STATUSES:
                print(f"WARN: Unknown {self._label.lower()} status: {status!r}. Continuing to poll...", file=sys.stderr)

            old_multiplier = multiplier
            multiplier = next_backoff_multiplier(attempts, multiplier)
            delay = self.poll_interval_seconds * multiplier
            print(f"{self._label} still in progress ({status}). Waiting {round(delay, 2)}s before next check...")
            vprint(f"Backoff multiplier: {old_multiplier:.2f}x -> {multiplier:.2f}x (attempt {attempts})")
            self._sleep(delay)


def run_job(
    submit: SubmitFn,
    fetch_status: FetchStatusFn,
    poll_interval_seconds: float,
    timeout_seconds: float,
    **kwargs,
) -> FindingSet:
    """Submit a job, wait for it, and return its finding set."""
    return JobPoller(poll_interval_seconds, timeout_seconds, **kwargs).run(submit, fetch_status).findings
