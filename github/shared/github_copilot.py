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

"""Copilot coding-agent assignment via ``gh api graphql`` – bot lookup among
the repository's assignable actors, issue node-id lookup, and the
``replaceActorsForAssignable`` mutation.

Assignment is best effort: every failure is a warning and ``False``.
"""

import json
from typing import Any

from .common import parse_repository, run_gh, vprint, warn

COPILOT_SWE_AGENT = "copilot-swe-agent"

_copilot_bot_cache: dict[str, str | None] = {}


def _run_graphql(query: str, variables: dict[str, Any] | None = None) -> dict[str, Any] | None:
    """Execute a GraphQL query via ``gh api graphql`` and return its ``data``."""
    args = ["api", "graphql", "-f", f"query={query}"]
    for k, v in (variables or {}).items():
        if isinstance(v, list):
            for item in v:
                args += ["-f", f"{k}[]={item}"]
        else:
            args += ["-F", f"{k}={v}"]
    res = run_gh(args)
    if res.returncode != 0:
        vprint(f"WARN: GraphQL call failed: {res.stderr}")
        return None
    try:
        payload = json.loads(res.stdout)
    except json.JSONDecodeError:
        vprint(f"WARN: Could not parse GraphQL response: {res.stdout!r}")
        return None
    if not isinstance(payload, dict) or payload.get("errors"):
        vprint(f"WARN: GraphQL errors: {payload.get('errors') if isinstance(payload, dict) else payload!r}")
        return None
    return payload.get("data") or {}


def gh_copilot_bot_id(repo: str) -> str | None:
    """Node id of the Copilot bot if it can be assigned in *repo*; cached per repo."""
    if repo in _copilot_bot_cache:
        return _copilot_bot_cache[repo]

    owner, name = parse_repository(repo)
    query = """
    query($owner: String!, $repo: String!) {
      repository(owner: $owner, name: $repo) {
        suggestedActors(capabilities: [CAN_BE_ASSIGNED], first: 100) {
          nodes { login __typename ... on Bot { id } }
        }
      }
    }
    """
    data = _run_graphql(query, {"owner": owner, "repo": name})
    if data is None:
        # Not cached: a transient failure should not disable later lookups.
        return None

    nodes = ((data.get("repository") or {}).get("suggestedActors") or {}).get("nodes") or []
    bot_id = next(
        (n.get("id") for n in nodes if isinstance(n, dict) and n.get("login") == COPILOT_SWE_AGENT and n.get("id")),
        None,
    )
    _copilot_bot_cache[repo] = bot_id
    return bot_id


def gh_issue_node_id(repo: str, number: int) -> str | None:
    owner, name = parse_repository(repo)
    query = """
    query($owner: String!, $repo: String!, $number: Int!) {
      repository(owner: $owner, name: $repo) { issue(number: $number) { id } }
    }
    """
    data = _run_graphql(query, {"owner": owner, "repo": name, "number": number})
    if data is None:
        return None
    return ((data.get("repository") or {}).get("issue") or {}).get("id")


def gh_assign_copilot(repo: str, number: int) -> bool:
    """Make the Copilot bot the only assignee of issue *number*."""
    bot_id = gh_copilot_bot_id(repo)
    if not bot_id:
        warn("Copilot assignment skipped: GitHub token must have access to GitHub Copilot to assign the bot.")
        return False

    issue_id = gh_issue_node_id(repo, number)
    if not issue_id:
        warn(f"Failed to get issue node ID for issue #{number}")
        return False

    mutation = """
    mutation($assignableId: ID!, $actorIds: [ID!]!) {
      replaceActorsForAssignable(input: { assignableId: $assignableId, actorIds: $actorIds }) {
        assignable { __typename }
      }
    }
    """
    if _run_graphql(mutation, {"assignableId": issue_id, "actorIds": [bot_id]}) is None:
        warn(f"Copilot assignment failed for issue #{number} (non-fatal)")
        return False

    print(f"Copilot assigned to issue #{number}")
    return True
