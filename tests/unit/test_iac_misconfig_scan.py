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

"""Tests for the scan step orchestration (remote service, gists and gh are faked)."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

import scanning.iac_misconfig_scan as step
import scanning.utils.publisher as publisher_mod
from shared.models import Issue
from scanning.utils.config import StepConfig
from scanning.utils.constants import LABEL_SEC_ADEPT_TO_CLOSE
from scanning.utils.errors import ConfigError, ScanStatusError, TrackerUnavailable
from scanning.utils.models import SnapshotRef, StatusResponse, finding_set_to_resources


class FakeGistStore:
    """Stands in for GistSnapshotStore, backed by the in-memory store fixture."""

    def __init__(self, memory_store, issues: dict[int, Issue]) -> None:
        self.memory = memory_store
        self.issues = issues
        self.listing_fails = False

    def load_issues(self, scope_label: str) -> dict[int, Issue]:
        if self.listing_fails:
            raise TrackerUnavailable("org/infra", scope_label)
        return self.issues

    def existing_batch_numbers(self) -> list[int]:
        return [r.batch_number for r in self.memory.refs if r.batch_number is not None]

    def list(self, scope_label: str):
        return self.memory.list(scope_label)

    def fetch(self, ref):
        return self.memory.fetch(ref)

    def store(self, batch):
        return self.memory.store(batch)


@pytest.fixture
def created(monkeypatch: pytest.MonkeyPatch) -> list[dict]:
    issues: list[dict] = []

    def create(repo, title, body, labels):
        issues.append({"title": title, "body": body, "labels": labels})
        return 200 + len(issues)

    monkeypatch.setattr(publisher_mod, "gh_issue_create", create)
    monkeypatch.setattr(publisher_mod, "gh_issue_add_labels", lambda repo, number, labels: issues.append({"label": (number, labels)}) or True)
    monkeypatch.setattr(publisher_mod, "gh_issue_comment", lambda repo, number, body: True)
    return issues


@pytest.fixture
def fake_store(monkeypatch: pytest.MonkeyPatch, memory_store):
    store = FakeGistStore(memory_store, {})
    monkeypatch.setattr(step, "connect", lambda token: MagicMock())
    monkeypatch.setattr(step, "GistSnapshotStore", lambda gh, repo, commit="": store)
    return store


def cfg(**kwargs) -> StepConfig:
    base = {"repo": "org/infra", "commit": "abc", "github_token": "ghs_x"}
    base.update(kwargs)
    return StepConfig(**base)


class TestPublishFindings:
    def test_second_run_publishes_nothing(self, fake_store, created, make_entry) -> None:
        findings = [make_entry(f"s{i:02d}", [f"i{i}"]) for i in range(12)]

        step.publish_findings(cfg(), findings)
        first = len(created)
        step.publish_findings(cfg(), findings)

        assert first == 2
        assert len(created) == 2

    def test_new_finding_gets_next_batch_number(self, fake_store, created, make_entry) -> None:
        step.publish_findings(cfg(), [make_entry("s1", ["A"])])
        step.publish_findings(cfg(), [make_entry("s1", ["A", "B"])])

        assert created[-1]["title"].endswith("Batch 2 of 2")
        assert "`B`" in created[-1]["body"]
        assert "`A`" not in created[-1]["body"].split("**Finding IDs:**", 1)[1].splitlines()[0]

    def test_label_orphans(self, fake_store, created, make_entry, memory_store) -> None:
        step.publish_findings(cfg(), [make_entry("gone", ["A"])])
        ref = memory_store.refs[0]
        memory_store.refs[0] = SnapshotRef(snapshot_id=ref.snapshot_id, issue_number=201, batch_number=1)
        fake_store.issues = {201: Issue(number=201, state="OPEN", title="t", body="", labels=[])}

        step.publish_findings(cfg(label_orphans=True), [make_entry("other", ["B"])])

        assert {"label": (201, [LABEL_SEC_ADEPT_TO_CLOSE])} in created

    def test_already_labelled_orphan_is_skipped(self, fake_store, created, make_entry, memory_store) -> None:
        step.publish_findings(cfg(), [make_entry("gone", ["A"])])
        ref = memory_store.refs[0]
        memory_store.refs[0] = SnapshotRef(snapshot_id=ref.snapshot_id, issue_number=201, batch_number=1)
        fake_store.issues = {201: Issue(number=201, state="OPEN", title="t", body="", labels=[LABEL_SEC_ADEPT_TO_CLOSE])}

        step.publish_findings(cfg(label_orphans=True), [make_entry("other", ["B"])])

        assert not any("label" in c for c in created)


class TestRun:
    def test_scan_result_file_and_step_output(self, tmp_path, monkeypatch, make_resource) -> None:
        result_file = tmp_path / "result.json"
        result_file.write_text(json.dumps([make_resource("b", ["2"]), make_resource("a", ["1"])]), encoding="utf-8")
        output = tmp_path / "output"
        monkeypatch.setenv("GITHUB_OUTPUT", str(output))
        published: list = []
        monkeypatch.setattr(step, "publish_findings", lambda c, findings, job_id="": published.append(findings))

        step.run(cfg(scan_result_file=str(result_file)))

        text = output.read_text(encoding="utf-8")
        assert text.startswith("scan-result<<")
        payload = json.loads(text.splitlines()[1])
        assert [r["ID"] for r in payload] == ["a", "b"]
        assert [e.subject.id for e in published[0]] == ["a", "b"]

    def test_no_token_skips_publishing(self, tmp_path, monkeypatch, make_resource, capsys) -> None:
        result_file = tmp_path / "result.json"
        result_file.write_text(json.dumps([make_resource("a", ["1"])]), encoding="utf-8")
        monkeypatch.delenv("GITHUB_OUTPUT", raising=False)
        monkeypatch.setattr(step, "publish_findings", MagicMock(side_effect=AssertionError("must not publish")))

        step.run(cfg(scan_result_file=str(result_file), github_token=""))

        assert "Skipping issue creation" in capsys.readouterr().out

    def test_failed_issue_listing_skips_publishing(self, tmp_path, monkeypatch, fake_store, created, make_resource, capsys) -> None:
        result_file = tmp_path / "result.json"
        result_file.write_text(json.dumps([make_resource("a.b", ["i1"])]), encoding="utf-8")
        monkeypatch.delenv("GITHUB_OUTPUT", raising=False)
        fake_store.listing_fails = True

        step.run(cfg(scan_result_file=str(result_file)))

        assert created == []
        out = capsys.readouterr()
        assert "skipping issue creation so batch numbers are not reused" in out.err
        assert "despite issue creation failure" in out.out

    def test_missing_result_file(self, tmp_path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            step.run(cfg(scan_result_file=str(tmp_path / "nope.json")))

    def test_remote_scan(self, tmp_path, monkeypatch, make_entry) -> None:
        plan = tmp_path / "plan.json"
        plan.write_text("{}", encoding="utf-8")
        client = MagicMock()
        client.start_scan_terraform.return_value = "job-42"
        client.get_scan_terraform_result.return_value = StatusResponse(status="Succeeded", findings=[make_entry("s1", ["A"])])

        report = step.run_scan(cfg(plan_path=str(plan), resource_types=["aws_s3_bucket"]), client)

        client.authenticate.assert_called_once()
        client.upload_terraform_file.assert_called_once()
        assert client.upload_terraform_file.call_args.args[1:] == ("Plan", "org/infra", "abc")
        client.start_scan_terraform.assert_called_once_with("org/infra", "abc", ["aws_s3_bucket"])
        client.get_scan_terraform_result.assert_called_once_with("job-42")
        assert report.job_id == "job-42"
        assert finding_set_to_resources(report.findings)[0]["ID"] == "s1"

    def test_failed_scan_exits_non_zero(self, monkeypatch, capsys) -> None:
        monkeypatch.setattr(step, "load_config", lambda: cfg(api_key="k", api_secret="s", plan_path="p"))
        monkeypatch.setattr(step.shutil, "which", lambda name: "/usr/bin/gh")

        def failing_run(c):
            raise ScanStatusError("Failed", "job-1", elapsed_seconds=12, attempts=3)

        monkeypatch.setattr(step, "run", failing_run)

        with pytest.raises(SystemExit) as excinfo:
            step.main()

        assert excinfo.value.code == 1
        err = capsys.readouterr().err
        assert "Job ID: job-1" in err
        assert "attempts=3" in err


def test_invalid_config_exits_with_error(monkeypatch) -> None:
    def bad_config():
        raise ConfigError("scan-timeout must be a positive integer")

    monkeypatch.setattr(step, "load_config", bad_config)
    with pytest.raises(SystemExit, match="ERROR: scan-timeout"):
        step.main()
