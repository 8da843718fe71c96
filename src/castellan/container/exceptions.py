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
"""Container exceptions — fatal errors during registration and activation."""

from __future__ import annotations

from collections.abc import Sequence

from castellan.kernel.exceptions import InfrastructureException


class ComponentCreationException(InfrastructureException):
    """Fatal error while registering or activating a component."""

    def __init__(self, subsystem: str, provider: str, reason: str) -> None:
        self.subsystem = subsystem
        self.provider = provider
        self.reason = reason
        message = f"Failed to create component '{provider}' ({subsystem}): {reason}"
        super().__init__(
            message=message,
            code=f"COMPONENT_CREATION_{subsystem.upper()}",
            context={"subsystem": subsystem, "provider": provider},
        )


class ResolutionError(ComponentCreationException):
    """No component is registered for the requested key or service type."""

    def __init__(
        self,
        *,
        service: type | None = None,
        key: str | None = None,
        required_by: str | None = None,
        parameter: str | None = None,
        suggestions: list[str] | None = None,
    ) -> None:
        self.service = service
        self.key = key
        self.required_by = required_by
        self.parameter = parameter
        self.suggestions = suggestions or []

        type_desc = getattr(service, "__name__", repr(service)) if service is not None else None
        if type_desc:
            headline = f"No component for service '{type_desc}' is registered"
        elif key:
            headline = f"No component with key '{key}' is registered"
        else:
            headline = "No matching component is registered"

        lines = [f"ResolutionError: {headline}"]

        if required_by or parameter:
            lines.append("")
            if required_by:
                lines.append(f"  Required by: {required_by}")
            if parameter:
                lines.append(f"    Parameter: {parameter}")

        if self.suggestions:
            lines.append("")
            lines.append(f"  Similar registered components: {', '.join(self.suggestions)}")

        ComponentCreationException.__init__(
            self,
            subsystem="resolution",
            provider=required_by or "container",
            reason=headline,
        )
        self.args = ("\n".join(lines),)

    def __str__(self) -> str:
        return self.args[0] if self.args else ""


class CyclicDependencyError(ComponentCreationException):
    """A component was re-entered while it was still being activated.

    ``chain`` holds the component keys along the resolution path, in the
    order they were entered; ``edges`` describes how each next component
    was reached.  ``interceptor`` names the interceptor reference through
    which the loop closed, when there is one.
    """

    def __init__(
        self,
        *,
        chain: Sequence[str],
        current: str,
        edges: Sequence[str] = (),
        interceptor: str | None = None,
    ) -> None:
        self.chain = list(chain)
        self.current = current
        self.component = current
        self.edges = list(edges)
        self.interceptor = interceptor

        path = " -> ".join([*self.chain, current])
        headline = f"Circular dependency: {path}"

        lines = [f"CyclicDependencyError: {headline}"]
        if self.edges:
            lines.append("")
            lines.append("  Resolution path:")
            for key, edge in zip([*self.chain, current], self.edges, strict=False):
                lines.append(f"    {key} (via {edge})")
        if interceptor:
            lines.append("")
            lines.append(f"  Offending pair: component '{current}' / interceptor {interceptor}")
        lines.append("")
        lines.append("  Suggestion: register another implementation of the service for the interceptor to use")

        ComponentCreationException.__init__(
            self,
            subsystem="cycle",
            provider=current,
            reason=headline,
        )
        self.context["chain"] = [*self.chain, current]
        if interceptor:
            self.context["interceptor"] = interceptor
        self.args = ("\n".join(lines),)

    def __str__(self) -> str:
        return self.args[0] if self.args else ""


class ComponentRegistrationError(ComponentCreationException):
    """A registration or facility declaration is invalid."""

    def __init__(self, provider: str, reason: str) -> None:
        super().__init__(subsystem="registration", provider=provider, reason=reason)

