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

"""IaC misconfiguration scan utilities.

Modules
-------
constants       Domain constants (label names, API and polling defaults).
errors          Scan error taxonomy (timeout, definitive status, transport, snapshot).
models          Core dataclass definitions (Job, Subject, Finding, Batch, Snapshot) and resource-dict conversion.
config          Step configuration from CLI flags and environment, with validation.
api_client      Analysis service client (API-key HMAC auth, token cache, upload / start / result).
uploads         Concurrent artifact upload joined all-or-error.
poller          Job submission and status polling with bounded exponential backoff.
reconciler      Idempotent selection of new findings, batch numbering, orphan detection.
batchmeta       ``batchmeta`` metadata block parsing / rendering.
templates       Markdown body template and ``{{ placeholder }}`` rendering.
issue_builder   Batch issue title / body construction and title parsing.
snapshot_store  Snapshot store interface and the gist-backed implementation.
publisher       One snapshot and one issue per batch, orphan labelling.
"""
