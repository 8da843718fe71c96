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
"""Interception exceptions — failures of a single proxied call."""

from __future__ import annotations

from castellan.kernel.exceptions import InfrastructureException


class InterceptionException(InfrastructureException):
    """Base for errors raised while dispatching one call through a chain."""


class NoTargetError(InterceptionException):
    """The chain forwarded past its last interceptor, but no target backs the proxy."""

    def __init__(self, component: str, operation: str | None = None) -> None:
        self.component = component
        self.operation = operation
        where = f"{component}.{operation}" if operation else component
        super().__init__(
            message=(
                f"Invocation of '{where}' reached the end of the interceptor chain "
                "but the component has no target; an interceptor must handle it without proceeding"
            ),
            code="INTERCEPTION_NO_TARGET",
            context={"component": component, "operation": operation},
        )


class DisposedError(InterceptionException):
    """A call was made through a proxy whose component has been disposed."""

    def __init__(self, component: str, operation: str | None = None) -> None:
        self.component = component
        self.operation = operation
        where = f"{component}.{operation}" if operation else component
        super().__init__(
            message=f"Component '{component}' has been disposed; cannot invoke '{where}'",
            code="INTERCEPTION_DISPOSED",
            context={"component": component, "operation": operation},
        )


class InterceptorContractError(InterceptionException):
    """A resolved interceptor does not implement ``intercept(context)``."""

    def __init__(self, *, component: str, interceptor: str, actual_type: type) -> None:
        self.component = component
        self.interceptor = interceptor
        self.actual_type = actual_type
        super().__init__(
            message=(
                f"Interceptor {interceptor} for component '{component}' resolved to "
                f"{actual_type.__qualname__}, which does not define intercept(context)"
            ),
            code="INTERCEPTION_CONTRACT",
            context={"component": component, "interceptor": interceptor},
        )
