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

"""Artifact upload – every file is uploaded concurrently, all attempts run to
completion, and the join fails if any single upload failed.
"""

from __future__ import annotations

import base64
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable

from shared.common import vprint

from .errors import TransportError

MAX_CONCURRENT_UPLOADS = 4


@dataclass(frozen=True)
class Artifact:
    path: str
    file_type: str
    commit: str
    name: str


@dataclass
class UploadResult:
    artifact: Artifact
    ok: bool
    error: str = ""


# (file_data_b64, file_type, repo_name, commit) -> service response
UploadFn = Callable[[str, str, str, str], Any]


def read_base64(path: str) -> str:
    with open(path, "rb") as fh:
        return base64.b64encode(fh.read()).decode("ascii")


def _upload_one(artifact: Artifact, repo_name: str, upload: UploadFn) -> UploadResult:
    print(f"Uploading {artifact.name}: {artifact.path}")
    try:
        data = read_base64(artifact.path)
        vprint(f"{artifact.name}: {len(data)} base64 characters")
        upload(data, artifact.file_type, repo_name, artifact.commit)
    except Exception as exc:
        print(f"ERROR: ✗ Failed to upload {artifact.name}: {exc}", file=sys.stderr)
        return UploadResult(artifact=artifact, ok=False, error=str(exc))
    print(f"✓ Successfully uploaded {artifact.name}")
    return UploadResult(artifact=artifact, ok=True)


def upload_artifacts(artifacts: list[Artifact], repo_name: str, upload: UploadFn) -> list[UploadResult]:
    """Upload *artifacts* in parallel; raise :class:`TransportError` if any failed."""
    if not artifacts:
        return []

    print(f"Starting parallel file uploads ({len(artifacts)} files)...")
    results: list[UploadResult] = []
    with ThreadPoolExecutor(max_workers=min(MAX_CONCURRENT_UPLOADS, len(artifacts))) as pool:
        futures = {pool.submit(_upload_one, a, repo_name, upload): a for a in artifacts}
        for future in as_completed(futures):
            results.append(future.result())

    # Report in submission order, not completion order.
    order = {a: i for i, a in enumerate(artifacts)}
    results.sort(key=lambda r: order[r.artifact])

    failed = [r for r in results if not r.ok]
    print(f"File upload summary: {len(results) - len(failed)} successful, {len(failed)} failed")
    if failed:
        details = ", ".join(f"{r.artifact.name} ({r.error})" for r in failed)
        raise TransportError(f"Some file uploads failed: {details}")

    print("✓ All files uploaded successfully!")
    return results
