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

"""GitHub Gist operations (PyGithub) – create a private single-file gist and
read back its JSON file, plus gist-URL parsing for issue bodies.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from github import Auth, Github, InputFileContent

GIST_URL_RE = re.compile(r"https://gist\.github\.com/(?:[^/\s)]+/)?(?P<id>[a-f0-9]{20,})")


@dataclass
class CreatedGist:
    gist_id: str
    html_url: str


def connect(token: str) -> Github:
    if not token:
        raise SystemExit("ERROR: GITHUB_TOKEN is required for gist access")
    return Github(auth=Auth.Token(token))


def extract_gist_id(text: str | None) -> str | None:
    """Return the first gist id linked from *text*, if any."""
    match = GIST_URL_RE.search(text or "")
    if match:
        return match.group("id")
    return None


def gist_create(gh: Github, filename: str, content: str, description: str) -> CreatedGist:
    """Create a private gist holding *content* as *filename*.

    Raises ``github.GithubException`` on API failure.
    """
    gist = gh.get_user().create_gist(
        False,
        {filename: InputFileContent(content)},
        description,
    )
    return CreatedGist(gist_id=gist.id, html_url=gist.html_url or "")


def gist_read_json_file(gh: Github, gist_id: str) -> str | None:
    """Return the content of the first ``.json`` file in the gist.

    Returns ``None`` when the gist has no JSON file. Raises
    ``github.GithubException`` when the gist cannot be fetched.
    """
    gist = gh.get_gist(gist_id)
    for name, gist_file in sorted((gist.files or {}).items()):
        if not name.endswith(".json"):
            continue
        if gist_file.content:
            return gist_file.content
    return None
