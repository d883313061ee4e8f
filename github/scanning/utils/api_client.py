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

"""Analysis service client – API-key authentication and the JSON POST
endpoints the scan steps use (file upload, scan start, scan result).

Authentication signs ``"/pb.Auth/AuthenticateAPIKey" + timestamp`` with
HMAC-SHA256 (base64url, padded) and caches the returned bearer token until
five minutes before it expires.

Every failure to reach the service, or a non-2xx answer, is raised as
:class:`TransportError`; nothing here retries.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from datetime import datetime, timedelta, timezone
from typing import Any

import requests

from shared.common import vprint

from .errors import TransportError
from .models import StatusResponse, finding_set_from_resources

AUTH_METHOD = "/pb.Auth/AuthenticateAPIKey"
TOKEN_EXPIRATION_BUFFER = timedelta(minutes=5)
# Used when the auth response carries no usable ExpiresAt.
DEFAULT_TOKEN_LIFETIME = timedelta(minutes=15)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def sign(secret: str, method: str, timestamp: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), (method + timestamp).encode("utf-8"), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii")


def _parse_expiry(value: Any) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class AnalysisApiClient:
    def __init__(
        self,
        api_key: str,
        api_secret: str,
        base_url: str,
        *,
        session: requests.Session | None = None,
        timeout: float = 60,
    ) -> None:
        if not api_key or not api_secret:
            raise ValueError("API key and API secret are required")
        if not base_url:
            raise ValueError("Base URL is required")
        self._api_key = api_key
        self._api_secret = api_secret
        self.base_url = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._timeout = timeout
        self._access_token: str | None = None
        self._token_expires_at: datetime | None = None

    def _token_valid(self) -> bool:
        if not self._access_token or self._token_expires_at is None:
            return False
        return self._token_expires_at > datetime.now(timezone.utc) + TOKEN_EXPIRATION_BUFFER

    def _request(self, endpoint: str, body: dict[str, Any], headers: dict[str, str]) -> dict[str, Any]:
        url = f"{self.base_url}{endpoint}"
        vprint(f"POST {url}")
        try:
            resp = self._session.post(url, json=body, headers=headers, timeout=self._timeout)
        except requests.RequestException as exc:
            raise TransportError(f"API request to {endpoint} failed: {exc}") from exc

        if not resp.ok:
            raise TransportError(
                f"API request to {endpoint} failed: {resp.status_code} {resp.reason} - {resp.text}"
            )
        try:
            data = resp.json()
        except ValueError as exc:
            raise TransportError(f"API request to {endpoint} returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise TransportError(f"API request to {endpoint} returned {type(data).__name__}, expected an object")
        return data

    def authenticate(self) -> None:
        if self._token_valid():
            vprint("Using existing valid access token")
            return

        print("Authenticating with API key...")
        timestamp = utc_timestamp()
        headers = {
            "Content-Type": "application/json",
            "Date": timestamp,
            "Authorization": f"APIKey {self._api_key}:{sign(self._api_secret, AUTH_METHOD, timestamp)}",
        }
        data = self._request(AUTH_METHOD, {}, headers)

        token = data.get("Token") or {}
        access_token = token.get("AccessToken") if isinstance(token, dict) else None
        if not access_token:
            raise TransportError("Authentication response carried no access token")
        self._access_token = str(access_token)
        self._token_expires_at = _parse_expiry(token.get("ExpiresAt")) or (
            datetime.now(timezone.utc) + DEFAULT_TOKEN_LIFETIME
        )
        print(f"Authentication successful. Token expires at: {self._token_expires_at}")

    def post(self, endpoint: str, body: dict[str, Any]) -> dict[str, Any]:
        self.authenticate()
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._access_token}",
        }
        return self._request(endpoint, body, headers)

    def get_caller_info(self) -> dict[str, Any]:
        return self.post("/pb.Auth/Caller", {})

    def upload_terraform_file(self, file_data_b64: str, file_type: str, repo_name: str, commit: str) -> dict[str, Any]:
        return self.post(
            "/pb.Queries/UploadTerraformFile",
            {"FileData": file_data_b64, "FileType": file_type, "RepoName": repo_name, "Commit": commit},
        )

    def start_scan_terraform(self, repo_name: str, commit: str, resource_types: list[str] | None = None) -> str:
        """Submit a misconfiguration scan and return its job id."""
        request: dict[str, Any] = {"RepoName": repo_name, "Commit": commit}
        if resource_types:
            request["ResourceTypes"] = resource_types
        print(f"Starting Terraform scan for repo: {repo_name}, commit: {commit}")
        data = self.post("/pb.Queries/StartScanTerraform", request)
        return str(data.get("JobID") or "")

    def get_scan_terraform_result(self, job_id: str) -> StatusResponse:
        data = self.post("/pb.Queries/GetScanTerraformResult", {"JobID": job_id})
        status = str(data.get("Status") or "")
        findings = None
        if status == "Succeeded" and data.get("Resources") is not None:
            findings = finding_set_from_resources(data["Resources"])
        return StatusResponse(status=status, findings=findings)
