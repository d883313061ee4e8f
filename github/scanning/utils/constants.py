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

"""Domain constants (label names, defaults)."""

LABEL_AVERLON_CREATED = "averlon-created"
LABEL_IAC_MISCONFIG_ANALYSIS = "averlon-iac-misconfiguration-analysis"
LABEL_SEC_ADEPT_TO_CLOSE = "sec:adept-to-close"

DEFAULT_BASE_URL = "https://wfe.prod.averlon.io/"
DEFAULT_POLL_INTERVAL_SECONDS = 30
DEFAULT_TIMEOUT_SECONDS = 1800
