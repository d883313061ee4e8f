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

"""Markdown body template for batch issues and its ``{{ placeholder }}``
renderer.
"""

import re
from typing import Any

PLACEHOLDER_RE = re.compile(r"\{\{\s*([a-zA-Z0-9_]+)\s*\}\}")


BATCH_BODY_TEMPLATE = """## {{ step_title }}

**Repository:** `{{ repo }}`
**Commit:** `{{ commit }}`
**Batch:** {{ batch_info }}

### Security Findings

**Finding IDs:** {{ finding_ids }}

- Subjects in this batch: {{ subject_count }}
- Unique findings in this batch: {{ finding_count }}

{{ subject_table }}

{{ snapshot_link }}

{{ workflow_run_note }}

---

_This issue was automatically created by {{ step_title }}._
"""


def render_markdown_template(template: str, values: dict[str, Any]) -> str:
    """Replace ``{{ key }}`` placeholders; unknown keys render empty."""
    def repl(match: re.Match[str]) -> str:
        v = values.get(match.group(1))
        return "" if v is None else str(v)

    rendered = PLACEHOLDER_RE.sub(repl, template)
    # Optional sections collapse to blank lines; squeeze them.
    return re.sub(r"\n{3,}", "\n\n", rendered).strip() + "\n"
