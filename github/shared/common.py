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

"""Shared low-level utilities – logging control, GitHub Actions environment
helpers (step outputs, workflow-run URL), and subprocess wrappers for the
``gh`` CLI.
"""

from __future__ import annotations

import os
import subprocess
import sys
import uuid

_verbose_enabled = False


def parse_runner_debug() -> bool:
    raw = os.getenv("RUNNER_DEBUG")
    if raw is None or raw == "":
        return False
    if raw not in {"0", "1"}:
        raise SystemExit("ERROR: RUNNER_DEBUG must be '0' or '1' when set")
    return raw == "1"


def set_verbose_enabled(value: bool) -> None:
    global _verbose_enabled
    _verbose_enabled = bool(value)


def is_verbose() -> bool:
    """Return the current verbose-logging state."""
    return _verbose_enabled


def vprint(msg: str) -> None:
    if _verbose_enabled:
        print(msg)


def warn(msg: str) -> None:
    print(f"WARN: {msg}", file=sys.stderr)


def parse_repository(value: str | None) -> tuple[str, str]:
    """Split an ``owner/repo`` string, raising ``ValueError`` when malformed."""
    repository = (value or "").strip()
    if not repository:
        raise ValueError("GITHUB_REPOSITORY environment variable is not set")

    parts = repository.split("/")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ValueError(f"Invalid GITHUB_REPOSITORY format: {repository!r}. Expected format: 'owner/repo'")
    return parts[0], parts[1]


def workflow_run_url(repo: str) -> str | None:
    run_id = os.getenv("GITHUB_RUN_ID")
    if not run_id or not repo:
        return None
    server_url = (os.getenv("GITHUB_SERVER_URL") or "https://github.com").rstrip("/")
    return f"{server_url}/{repo}/actions/runs/{run_id}"


def set_output(name: str, value: str) -> bool:
    """Append a step output to ``$GITHUB_OUTPUT``.

    Returns ``False`` when not running inside GitHub Actions.
    """
    output_path = os.getenv("GITHUB_OUTPUT")
    if not output_path:
        vprint(f"GITHUB_OUTPUT not set – skipping output {name!r}")
        return False

    # Heredoc form so multi-line JSON values survive.
    delimiter = f"ghadelimiter_{uuid.uuid4().hex}"
    with open(output_path, "a", encoding="utf-8") as fh:
        fh.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")
    return True


def run_cmd(cmd: list[str], *, capture_output: bool = True) -> subprocess.CompletedProcess:
    return subprocess.run(cmd, check=False, capture_output=capture_output, text=True)


def run_gh(args: list[str], *, capture_output: bool = True) -> subprocess.CompletedProcess:
    cmd = ["gh"] + args
    try:
        return run_cmd(cmd, capture_output=capture_output)
    except FileNotFoundError:
        print("ERROR: gh CLI not found. Install and authenticate gh.", file=sys.stderr)
        raise SystemExit(1)
