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

"""Check that the labels the scan step applies exist in the repository.

Required labels:

  averlon-created
  averlon-iac-misconfiguration-analysis (or the --issue-label scope label)
  sec:adept-to-close (only applied with --label-orphans)

Usage:
  python3 check_labels.py --repo owner/repo
"""

from __future__ import annotations

import argparse
import sys

from shared.github_issues import gh_label_list

from scanning.utils.constants import LABEL_AVERLON_CREATED, LABEL_IAC_MISCONFIG_ANALYSIS, LABEL_SEC_ADEPT_TO_CLOSE


def required_labels(scope_label: str = LABEL_IAC_MISCONFIG_ANALYSIS) -> list[str]:
    return [LABEL_AVERLON_CREATED, scope_label, LABEL_SEC_ADEPT_TO_CLOSE]


def missing_labels(existing: set[str], required: list[str]) -> list[str]:
    return [label for label in required if label not in existing]


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        description="Verify that all labels used by the IaC scan step exist in the repository",
    )
    parser.add_argument(
        "--repo",
        required=True,
        help="GitHub repository in owner/repo format",
    )
    parser.add_argument(
        "--issue-label",
        default=LABEL_IAC_MISCONFIG_ANALYSIS,
        help=f"Scope label of the batch issues (default: {LABEL_IAC_MISCONFIG_ANALYSIS})",
    )
    args = parser.parse_args(argv)

    existing = gh_label_list(args.repo)
    if existing is None:
        print(f"ERROR: could not list labels of {args.repo}", file=sys.stderr)
        raise SystemExit(1)

    required = required_labels(args.issue_label)
    missing = missing_labels(existing, required)
    if missing:
        lines = "\n".join(f"  - {label}" for label in missing)
        print(
            f"ERROR: {args.repo} is missing {len(missing)} of {len(required)} required label(s):\n{lines}\n"
            "Create them before enabling the scan step.",
            file=sys.stderr,
        )
        raise SystemExit(1)

    print(f"All {len(required)} required labels exist in {args.repo}")
    raise SystemExit(0)


if __name__ == "__main__":
    main()
