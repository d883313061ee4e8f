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

"""Step configuration – CLI flags with environment fallbacks, validated into
a :class:`StepConfig`.
"""

from __future__ import annotations

import argparse
import os
from dataclasses import dataclass, field

from shared.common import parse_repository

from .constants import (
    DEFAULT_BASE_URL,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
    LABEL_IAC_MISCONFIG_ANALYSIS,
)
from .errors import ConfigError


@dataclass
class StepConfig:
    repo: str
    issue_label: str = LABEL_IAC_MISCONFIG_ANALYSIS
    api_key: str = ""
    api_secret: str = ""
    base_url: str = DEFAULT_BASE_URL
    plan_path: str = ""
    commit: str = ""
    poll_interval_seconds: int = DEFAULT_POLL_INTERVAL_SECONDS
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    resource_types: list[str] = field(default_factory=list)
    github_token: str = ""
    scan_result_file: str = ""
    dry_run: bool = False
    verbose: bool = False
    label_orphans: bool = False
    auto_assign_copilot: bool = False

    @property
    def uses_remote_scan(self) -> bool:
        return not self.scan_result_file


def parse_resource_types(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [t.strip() for t in raw.split(",") if t.strip()]


def _positive_int(name: str, raw: object) -> int:
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a positive integer, got {raw!r}") from None
    if value <= 0:
        raise ConfigError(f"{name} must be a positive integer, got {raw!r}")
    return value


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="Run an IaC misconfiguration scan and publish new findings as batched GitHub issues",
    )
    p.add_argument("--api-key", default=os.getenv("AVERLON_API_KEY", ""), help="Analysis API key (env: AVERLON_API_KEY)")
    p.add_argument(
        "--api-secret",
        default=os.getenv("AVERLON_API_SECRET", ""),
        help="Analysis API secret (env: AVERLON_API_SECRET)",
    )
    p.add_argument(
        "--base-url",
        default=os.getenv("AVERLON_BASE_URL") or DEFAULT_BASE_URL,
        help=f"Analysis API base URL (default: {DEFAULT_BASE_URL})",
    )
    p.add_argument("--plan-path", default="", help="Terraform plan JSON file to upload")
    p.add_argument("--commit", default=os.getenv("GITHUB_SHA", ""), help="Commit the plan belongs to (default: $GITHUB_SHA)")
    p.add_argument(
        "--scan-poll-interval",
        default=str(DEFAULT_POLL_INTERVAL_SECONDS),
        help=f"Base seconds between status checks (default: {DEFAULT_POLL_INTERVAL_SECONDS})",
    )
    p.add_argument(
        "--scan-timeout",
        default=str(DEFAULT_TIMEOUT_SECONDS),
        help=f"Seconds to wait for the scan before failing (default: {DEFAULT_TIMEOUT_SECONDS})",
    )
    p.add_argument("--resource-type-filter", default="", help="Comma-separated resource types to scan")
    p.add_argument("--repo", default=os.getenv("GITHUB_REPOSITORY", ""), help="owner/repo (default: $GITHUB_REPOSITORY)")
    p.add_argument(
        "--issue-label",
        default=LABEL_IAC_MISCONFIG_ANALYSIS,
        help=f"Scope label of the batch issues (default: {LABEL_IAC_MISCONFIG_ANALYSIS})",
    )
    p.add_argument(
        "--scan-result-file",
        default="",
        help="Reconcile a saved scan result JSON instead of running a scan",
    )
    p.add_argument(
        "--dry-run",
        action="store_true",
        help="Do not create gists/issues/labels; only read and print intended actions",
    )
    p.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logs (also enabled when RUNNER_DEBUG=1)",
    )
    p.add_argument(
        "--label-orphans",
        action="store_true",
        help="Label open batch issues whose resources all disappeared from the scan",
    )
    p.add_argument(
        "--auto-assign-copilot",
        action="store_true",
        help="Assign each created batch issue to the Copilot coding agent",
    )
    return p


def config_from_args(args: argparse.Namespace, *, github_token: str | None = None) -> StepConfig:
    """Validate parsed flags, raising :class:`ConfigError` on the first problem."""
    try:
        owner, name = parse_repository(args.repo)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc

    interval = _positive_int("scan-poll-interval", args.scan_poll_interval)
    timeout = _positive_int("scan-timeout", args.scan_timeout)
    if timeout < interval:
        raise ConfigError(f"scan-timeout ({timeout}s) must be greater than or equal to scan-poll-interval ({interval}s)")

    cfg = StepConfig(
        repo=f"{owner}/{name}",
        issue_label=str(args.issue_label or LABEL_IAC_MISCONFIG_ANALYSIS),
        api_key=str(args.api_key or ""),
        api_secret=str(args.api_secret or ""),
        base_url=str(args.base_url or DEFAULT_BASE_URL),
        plan_path=str(args.plan_path or ""),
        commit=str(args.commit or ""),
        poll_interval_seconds=interval,
        timeout_seconds=timeout,
        resource_types=parse_resource_types(args.resource_type_filter),
        github_token=github_token if github_token is not None else os.getenv("GITHUB_TOKEN", ""),
        scan_result_file=str(args.scan_result_file or ""),
        dry_run=bool(args.dry_run),
        verbose=bool(args.verbose),
        label_orphans=bool(args.label_orphans),
        auto_assign_copilot=bool(args.auto_assign_copilot),
    )

    if cfg.uses_remote_scan:
        missing = [
            flag
            for flag, value in (
                ("--api-key", cfg.api_key),
                ("--api-secret", cfg.api_secret),
                ("--plan-path", cfg.plan_path),
                ("--commit", cfg.commit),
            )
            if not value
        ]
        if missing:
            raise ConfigError(f"Missing required input(s): {', '.join(missing)}")
    return cfg


def load_config(argv: list[str] | None = None) -> StepConfig:
    return config_from_args(build_parser().parse_args(argv))
