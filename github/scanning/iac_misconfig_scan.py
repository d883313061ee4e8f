#!/usr/bin/env python3
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

"""IaC misconfiguration scan step.

1. Upload the Terraform plan and start a misconfiguration scan.
2. Poll the scan with bounded exponential backoff until it succeeds, fails,
   or the timeout elapses.
3. Write the sorted result to the ``scan-result`` step output.
4. Reconcile the result against the snapshots of the open batch issues and
   publish only subjects with unreported findings, 10 per batch issue.
5. With ``--label-orphans``, label open batch issues none of whose resources
   are in the scan any more with ``sec:adept-to-close``.
6. With ``--auto-assign-copilot``, assign each created issue to the Copilot
   coding agent (best effort).

Usage:
  python3 iac_misconfig_scan.py --plan-path plan.json --commit <sha>
  python3 iac_misconfig_scan.py --scan-result-file result.json --dry-run
"""

from __future__ import annotations

import json
import shutil
import sys

from github import GithubException

from shared.common import parse_runner_debug, set_output, set_verbose_enabled, vprint, warn, workflow_run_url
from shared.github_gists import connect
from shared.models import Issue

from scanning.utils.api_client import AnalysisApiClient
from scanning.utils.config import StepConfig, load_config
from scanning.utils.constants import LABEL_SEC_ADEPT_TO_CLOSE
from scanning.utils.errors import ConfigError, ScanError, TrackerUnavailable
from scanning.utils.models import FindingSet, PollReport, SnapshotRef, finding_set_from_resources, finding_set_to_resources
from scanning.utils.poller import JobPoller
from scanning.utils.publisher import BatchPublisher
from scanning.utils.reconciler import find_orphan_batches, reconcile
from scanning.utils.snapshot_store import GistSnapshotStore, load_snapshots
from scanning.utils.uploads import Artifact, upload_artifacts

PLAN_FILE_TYPE = "Plan"


def load_scan_result_file(path: str) -> FindingSet:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except FileNotFoundError:
        raise ConfigError(f"scan result file not found: {path}") from None
    except json.JSONDecodeError as exc:
        raise ConfigError(f"scan result file {path} is not valid JSON: {exc.msg}") from exc
    if not isinstance(data, list):
        raise ConfigError(f"scan result file {path} must hold a JSON list of resources")
    return finding_set_from_resources(data)


def run_scan(cfg: StepConfig, client: AnalysisApiClient) -> PollReport:
    client.authenticate()
    upload_artifacts(
        [Artifact(path=cfg.plan_path, file_type=PLAN_FILE_TYPE, commit=cfg.commit, name="Base Plan")],
        cfg.repo,
        client.upload_terraform_file,
    )

    poller = JobPoller(cfg.poll_interval_seconds, cfg.timeout_seconds, label="Terraform scan")
    return poller.run(
        lambda: client.start_scan_terraform(cfg.repo, cfg.commit, cfg.resource_types),
        lambda job: client.get_scan_terraform_result(job.id),
    )


def sorted_findings(findings: FindingSet) -> FindingSet:
    return sorted(findings, key=lambda e: e.subject.id)


def _already_labelled(issues: dict[int, Issue], ref: SnapshotRef) -> bool:
    issue = issues.get(ref.issue_number) if ref.issue_number is not None else None
    return issue is not None and LABEL_SEC_ADEPT_TO_CLOSE in issue.labels


def publish_findings(cfg: StepConfig, findings: FindingSet, *, job_id: str = "") -> None:
    gh = connect(cfg.github_token)
    store = GistSnapshotStore(gh, cfg.repo, commit=cfg.commit)

    issues = store.load_issues(cfg.issue_label)
    refs = store.list(cfg.issue_label)
    snapshots = load_snapshots(store, refs)

    batches = reconcile(findings, snapshots, store.existing_batch_numbers())

    publisher = BatchPublisher(
        store,
        cfg.repo,
        cfg.issue_label,
        commit=cfg.commit,
        job_id=job_id,
        workflow_run_url=workflow_run_url(cfg.repo),
        dry_run=cfg.dry_run,
        auto_assign_copilot=cfg.auto_assign_copilot,
    )
    publisher.publish_all(batches)

    if cfg.label_orphans:
        orphans = [
            ref
            for ref in find_orphan_batches(findings, snapshots)
            if not _already_labelled(issues, ref)
        ]
        vprint(f"Found {len(orphans)} orphaned batch issue(s)")
        labelled = publisher.label_orphans(orphans)
        if not cfg.dry_run:
            print(f"Labelled {labelled} orphaned batch issue(s) with {LABEL_SEC_ADEPT_TO_CLOSE!r}")


def run(cfg: StepConfig) -> None:
    job_id = ""
    if cfg.scan_result_file:
        print(f"Loading scan result from {cfg.scan_result_file}")
        findings = load_scan_result_file(cfg.scan_result_file)
    else:
        client = AnalysisApiClient(cfg.api_key, cfg.api_secret, cfg.base_url)
        report = run_scan(cfg, client)
        job_id = report.job_id
        findings = report.findings
        print(
            f"Scan job {report.job_id} finished after {round(report.elapsed_seconds)}s "
            f"and {report.attempts} polling attempt(s)"
        )

    findings = sorted_findings(findings)
    if set_output("scan-result", json.dumps(finding_set_to_resources(findings))):
        print(f"Scan results set as step output ({len(findings)} resources)")

    if not cfg.github_token:
        print("GitHub token not provided. Skipping issue creation.")
        return
    if not findings:
        print("Scan returned no resources. Skipping issue creation.")
        return

    print("Creating GitHub issues for new findings...")
    try:
        publish_findings(cfg, findings, job_id=job_id)
    except GithubException as exc:
        # The scan itself succeeded and its result is already in the output.
        warn(f"Failed to create GitHub issues: GitHub API error {exc.status}")
        print("Scan completed successfully despite issue creation failure")
    except TrackerUnavailable as exc:
        warn(f"{exc} – skipping issue creation so batch numbers are not reused")
        print("Scan completed successfully despite issue creation failure")


def main() -> None:
    set_verbose_enabled(parse_runner_debug())
    try:
        cfg = load_config()
    except ConfigError as exc:
        raise SystemExit(f"ERROR: {exc}")
    set_verbose_enabled(cfg.verbose or parse_runner_debug())

    if cfg.github_token and shutil.which("gh") is None:
        raise SystemExit("ERROR: gh CLI is required. Install and authenticate (gh auth login).")

    try:
        run(cfg)
    except ScanError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
