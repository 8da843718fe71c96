# Copyright 2026 Firefly Software Solutions Inc.
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
"""Pointcut patterns for selecting components by qualified name."""

from __future__ import annotations

import functools
import re

# ``**`` spans one or more dot-separated segments, ``*`` stays inside one
# segment, ``?`` is a single non-dot character.
_TOKEN_RE = re.compile(r"\*\*|\*|\?|[^*?]+")


@functools.lru_cache(maxsize=256)
def compile_pointcut(pattern: str) -> re.Pattern[str]:
    """Compile a pointcut pattern such as ``app.**.*Service`` into a regex."""
    if not pattern:
        raise ValueError("Pointcut pattern must not be empty")
    parts: list[str] = []
    for token in _TOKEN_RE.findall(pattern):
        if token == "**":
            parts.append(r"(?:[^.]+\.)*[^.]+")
        elif token == "*":
            parts.append(r"[^.]*")
        elif token == "?":
            parts.append(r"[^.]")
        else:
            parts.append(re.escape(token))
    return re.compile("".join(parts))


def matches_pointcut(pattern: str, qualified_name: str) -> bool:
    """Check whether *qualified_name* matches *pattern* in full.

    >>> matches_pointcut("app.services.*Service", "app.services.OrderService")
    True
    >>> matches_pointcut("app.**", "app.services.billing.InvoiceService")
    True
    >>> matches_pointcut("app.*", "app.services.OrderService")
    False
    """
    return compile_pointcut(pattern).fullmatch(qualified_name) is not None
