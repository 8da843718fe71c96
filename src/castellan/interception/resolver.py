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
"""Interceptor reference resolution."""

from __future__ import annotations

from typing import Any, Protocol

from castellan.interception.exceptions import InterceptorContractError
from castellan.interception.types import Interceptor, is_interceptor


class ComponentLookup(Protocol):
    """The slice of the container the resolver re-enters.

    *context* is the container's creation context for the activation in
    progress; the resolver passes it through untouched so that cycle
    detection sees the whole resolution path.
    """

    def resolve_key_in(self, context: Any, key: str, *, via: str, interceptor: str | None = None) -> Any: ...

    def resolve_service_in(self, context: Any, service: type, *, via: str, interceptor: str | None = None) -> Any: ...


class InterceptorReferenceResolver:
    """Turns an interceptor reference into a live interceptor from the container.

    Resolution goes through the container's normal activation path: the
    interceptor gets its own dependencies injected and is itself wrapped if
    it is intercepted.  Missing registrations surface as ``ResolutionError``
    and true cycles as ``CyclicDependencyError``, both raised by the
    container.
    """

    def __init__(self, lookup: ComponentLookup) -> None:
        self._lookup = lookup

    def resolve(self, reference: Any, owner: Any, context: Any = None) -> Interceptor:
        label = str(reference)
        via = f"interceptor {label} of '{owner.key}'"
        if reference.key is not None:
            instance = self._lookup.resolve_key_in(context, reference.key, via=via, interceptor=label)
        else:
            instance = self._lookup.resolve_service_in(
                context, reference.interceptor_type, via=via, interceptor=label
            )

        if not is_interceptor(instance):
            raise InterceptorContractError(component=owner.key, interceptor=label, actual_type=type(instance))
        return instance
