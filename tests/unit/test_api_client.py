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

"""Tests for the analysis API client (requests session is mocked)."""

from __future__ import annotations

import base64
import hashlib
import hmac
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
import requests

from scanning.utils.api_client import AUTH_METHOD, TOKEN_EXPIRATION_BUFFER, AnalysisApiClient, sign
from scanning.utils.errors import TransportError


def response(payload=None, *, status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.ok = 200 <= status < 300
    resp.status_code = status
    resp.reason = "OK" if resp.ok else "Error"
    resp.text = str(payload)
    resp.json.return_value = payload
    return resp


def token_response(minutes: int = 60) -> MagicMock:
    expires = (datetime.now(timezone.utc) + timedelta(minutes=minutes)).isoformat().replace("+00:00", "Z")
    return response({"Token": {"AccessToken": "tok-1", "ExpiresAt": expires}})


def client_with(*responses) -> tuple[AnalysisApiClient, MagicMock]:
    session = MagicMock()
    session.post.side_effect = list(responses)
    return AnalysisApiClient("key", "secret", "https://api.example.test/", session=session), session


def test_sign_is_base64url_hmac_sha256() -> None:
    expected = base64.urlsafe_b64encode(
        hmac.new(b"secret", b"/pb.Auth/AuthenticateAPIKey2026-01-01T00:00:00.000Z", hashlib.sha256).digest()
    ).decode()
    assert sign("secret", AUTH_METHOD, "2026-01-01T00:00:00.000Z") == expected


def test_requires_credentials() -> None:
    with pytest.raises(ValueError):
        AnalysisApiClient("", "secret", "https://x")


class TestAuthentication:
    def test_sends_signed_api_key_header(self) -> None:
        client, session = client_with(token_response())
        client.authenticate()

        url = session.post.call_args.args[0]
        headers = session.post.call_args.kwargs["headers"]
        assert url == "https://api.example.test/pb.Auth/AuthenticateAPIKey"
        assert headers["Authorization"] == f"APIKey key:{sign('secret', AUTH_METHOD, headers['Date'])}"

    def test_token_is_cached(self) -> None:
        client, session = client_with(token_response(), response({"JobID": "j1"}), response({"JobID": "j2"}))

        assert client.start_scan_terraform("org/repo", "abc") == "j1"
        assert client.start_scan_terraform("org/repo", "abc") == "j2"
        assert session.post.call_count == 3

    def test_token_near_expiry_is_refreshed(self) -> None:
        client, session = client_with(token_response(minutes=2), response({}), token_response(), response({}))

        client.get_caller_info()
        client.get_caller_info()
        assert session.post.call_count == 4

    def test_missing_expiry_uses_default_lifetime(self) -> None:
        client, session = client_with(response({"Token": {"AccessToken": "tok-1"}}), response({}), response({}))

        client.get_caller_info()
        client.get_caller_info()

        assert session.post.call_count == 3
        assert client._token_expires_at > datetime.now(timezone.utc) + TOKEN_EXPIRATION_BUFFER

    def test_missing_token_is_transport_error(self) -> None:
        client, _ = client_with(response({"Token": {}}))
        with pytest.raises(TransportError, match="no access token"):
            client.authenticate()


class TestEndpoints:
    def test_start_scan_forwards_resource_types(self) -> None:
        client, session = client_with(token_response(), response({"JobID": "job-7"}))

        assert client.start_scan_terraform("org/repo", "abc", ["aws_s3_bucket"]) == "job-7"
        body = session.post.call_args.kwargs["json"]
        assert body == {"RepoName": "org/repo", "Commit": "abc", "ResourceTypes": ["aws_s3_bucket"]}
        assert session.post.call_args.kwargs["headers"]["Authorization"] == "Bearer tok-1"

    def test_result_converts_resources_only_when_succeeded(self, make_resource) -> None:
        resources = [make_resource("s1", ["A", "B"])]
        client, _ = client_with(
            token_response(),
            response({"JobID": "j", "Status": "Running", "Resources": resources}),
            response({"JobID": "j", "Status": "Succeeded", "Resources": resources}),
        )

        running = client.get_scan_terraform_result("j")
        done = client.get_scan_terraform_result("j")

        assert running.status == "Running"
        assert running.findings is None
        assert done.status == "Succeeded"
        assert done.findings[0].finding_ids() == {"A", "B"}

    @pytest.mark.parametrize("payload", [{"Status": "Succeeded", "Resources": None}, {"Status": "Succeeded"}])
    def test_succeeded_without_resources_has_no_result_data(self, payload) -> None:
        client, _ = client_with(token_response(), response(payload))

        done = client.get_scan_terraform_result("j")

        assert done.status == "Succeeded"
        assert done.findings is None

    def test_succeeded_with_empty_resources(self) -> None:
        client, _ = client_with(token_response(), response({"Status": "Succeeded", "Resources": []}))
        assert client.get_scan_terraform_result("j").findings == []

    def test_upload_payload(self) -> None:
        client, session = client_with(token_response(), response({}))
        client.upload_terraform_file("ZGF0YQ==", "Plan", "org/repo", "abc")

        assert session.post.call_args.args[0].endswith("/pb.Queries/UploadTerraformFile")
        assert session.post.call_args.kwargs["json"] == {
            "FileData": "ZGF0YQ==",
            "FileType": "Plan",
            "RepoName": "org/repo",
            "Commit": "abc",
        }


class TestFailures:
    def test_http_error_status(self) -> None:
        client, _ = client_with(token_response(), response({"error": "nope"}, status=500))
        with pytest.raises(TransportError, match="500"):
            client.start_scan_terraform("org/repo", "abc")

    def test_network_error(self) -> None:
        client, _ = client_with(token_response(), requests.ConnectionError("refused"))
        with pytest.raises(TransportError, match="refused"):
            client.get_scan_terraform_result("j")

    def test_invalid_json(self) -> None:
        bad = response(None)
        bad.json.side_effect = ValueError("no json")
        client, _ = client_with(token_response(), bad)
        with pytest.raises(TransportError, match="invalid JSON"):
            client.get_caller_info()
