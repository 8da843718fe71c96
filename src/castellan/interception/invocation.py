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
"""Invocation context and chain dispatch."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

from castellan.interception.exceptions import NoTargetError
from castellan.interception.types import Interceptor, Operation


class TargetSource(Protocol):
    """Where the tail of a chain gets the real target from."""

    @property
    def target(self) -> Any: ...

    def acquire_target(self, operation: str | None = None) -> Any: ...


class StaticTarget:
    """A :class:`TargetSource` over a fixed object, or over nothing at all."""

    __slots__ = ("_target", "_name")

    def __init__(self, target: Any = None, name: str = "<static>") -> None:
        self._target = target
        self._name = name

    @property
    def target(self) -> Any:
        return self._target

    def acquire_target(self, operation: str | None = None) -> Any:
        if self._target is None:
            raise NoTargetError(self._name, operation)
        return self._target


class InvocationContext:
    """State of one in-flight call through an interceptor chain.

    A context is created per call and never shared between calls or
    threads, so interceptors may mutate it freely.

    Attributes:
        operation: The :class:`Operation` being invoked.
        arguments: Positional arguments; interceptors may replace items.
        kwargs: Keyword arguments; interceptors may add or replace entries.
        return_value: What the caller receives.  Starts as the operation's
            zero value.
        proxy: The proxy handle the call came through, if any.
        component: The component model the chain belongs to, if any.
        forwarded: True once an interceptor has called :meth:`proceed`.
        target_invoked: True once the call reached the real target.
        local: Scratch dict for interceptor-to-interceptor communication.
    """

    __slots__ = (
        "operation",
        "arguments",
        "kwargs",
        "return_value",
        "proxy",
        "component",
        "forwarded",
        "target_invoked",
        "local",
        "_chain",
        "_target_source",
        "_cursor",
    )

    def __init__(
        self,
        *,
        operation: Operation,
        args: Sequence[Any] = (),
        kwargs: dict[str, Any] | None = None,
        chain: Sequence[Interceptor] = (),
        target_source: TargetSource | None = None,
        proxy: Any = None,
        component: Any = None,
    ) -> None:
        self.operation = operation
        self.arguments: list[Any] = list(args)
        self.kwargs: dict[str, Any] = dict(kwargs or {})
        self.return_value: Any = operation.zero_value()
        self.proxy = proxy
        self.component = component
        self.forwarded = False
        self.target_invoked = False
        self.local: dict[str, Any] = {}
        self._chain = chain
        self._target_source = target_source if target_source is not None else StaticTarget()
        self._cursor = 0

    @property
    def method_name(self) -> str:
        return self.operation.name

    @property
    def cursor(self) -> int:
        """Index of the next interceptor :meth:`proceed` would run."""
        return self._cursor

    @property
    def chain_length(self) -> int:
        return len(self._chain)

    @property
    def target(self) -> Any:
        """The real target if it exists yet; reading this never builds it."""
        return self._target_source.target

    def get_argument(self, index: int) -> Any:
        return self.arguments[index]

    def set_argument(self, index: int, value: Any) -> None:
        self.arguments[index] = value

    def proceed(self) -> Any:
        """Run the rest of the chain, then the target; return ``return_value``.

        May be called more than once by the same interceptor, each call
        re-running everything after it.
        """
        self.forwarded = True
        self._advance()
        return self.return_value

    def _advance(self) -> None:
        index = self._cursor
        if index < len(self._chain):
            self._cursor = index + 1
            try:
                self._chain[index].intercept(self)
            finally:
                self._cursor = index
            return

        target = self._target_source.acquire_target(self.operation.name)
        method = getattr(target, self.operation.name)
        self.return_value = method(*self.arguments, **self.kwargs)
        self.target_invoked = True

    def __repr__(self) -> str:
        return (
            f"InvocationContext(operation={self.operation.qualified_name}, "
            f"cursor={self._cursor}/{len(self._chain)}, forwarded={self.forwarded})"
        )


def dispatch(context: InvocationContext) -> Any:
    """Execute *context*'s chain from the first interceptor and return the call's result.

    Interceptor and target exceptions propagate unchanged.
    """
    context._advance()
    return context.return_value
