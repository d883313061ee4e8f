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

"""``batchmeta`` metadata blocks – parsing and rendering the hidden
HTML-comment block stored at the top of every batch issue body.

The block records the batch number, the scope label and the snapshot gist id
so later runs can find the snapshot without relying on the visible body.
"""

from __future__ import annotations

import re

BATCHMETA_RE = re.compile(r"<!--\s*batchmeta\r?\n(.*?)\r?\n-->", re.S)

SCHEMA_VERSION = "1"


def parse_kv_block(block: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for line in (block or "").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        k, v = line.split("=", 1)
        data[k.strip()] = v.strip()
    return data


def load_batchmeta(issue_body: str | None) -> dict[str, str]:
    match = BATCHMETA_RE.search(issue_body or "")
    if match:
        return parse_kv_block(match.group(1))
    return {}


def render_batchmeta(batchmeta: dict[str, str]) -> str:
    preferred_order = [
        "schema",
        "scope",
        "batch",
        "total_batches",
        "snapshot_id",
        "snapshot_url",
        "repo",
        "commit",
        "job_id",
    ]
    lines: list[str] = []
    for key in preferred_order:
        if key in batchmeta:
            lines.append(f"{key}={batchmeta.get(key, '')}")
    for key in sorted(k for k in batchmeta.keys() if k not in set(preferred_order)):
        lines.append(f"{key}={batchmeta.get(key, '')}")
    return "<!--batchmeta\n" + "\n".join(lines) + "\n-->"


def parse_int(value: str | None) -> int | None:
    try:
        return int((value or "").strip())
    except ValueError:
        return None
