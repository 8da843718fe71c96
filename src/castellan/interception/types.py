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
"""Interception core types — the interceptor contract and operation metadata."""

from __future__ import annotations

import functools
import inspect
import typing
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from castellan.interception.invocation import InvocationContext

# Zero values for value-like return annotations; called to get a fresh value per call.
_ZERO_FACTORIES: dict[Any, Callable[[], Any]] = {
    bool: bool,
    int: int,
    float: float,
    complex: complex,
    str: str,
    bytes: bytes,
    list: list,
    dict: dict,
    tuple: tuple,
    set: set,
    frozenset: frozenset,
}


@runtime_checkable
class Interceptor(Protocol):
    """Contract every interceptor implements.

    ``intercept`` may read or replace ``context.arguments`` and
    ``context.return_value``, call ``context.proceed()`` to run the rest of
    the chain (and eventually the target), or return without proceeding to
    short-circuit the call.  Its own return value is ignored: the caller
    receives ``context.return_value``.

    Example::

        class ResultModifierInterceptor:
            def intercept(self, context: InvocationContext) -> None:
                context.proceed()
                context.return_value += 1
    """

    def intercept(self, context: InvocationContext) -> None: ...


@runtime_checkable
class OnBehalfAware(Protocol):
    """Interceptors implementing this are told which component they were resolved for."""

    def set_intercepted_component(self, model: Any) -> None: ...


def is_interceptor(obj: Any) -> bool:
    """True if *obj* (an instance or a class) exposes a callable ``intercept``."""
    return callable(getattr(obj, "intercept", None))


def _zero_factory_for(annotation: Any) -> Callable[[], Any] | None:
    factory = _ZERO_FACTORIES.get(annotation)
    if factory is not None:
        return factory
    origin = typing.get_origin(annotation)
    if origin is not None and origin in _ZERO_FACTORIES:
        return _ZERO_FACTORIES[origin]
    return None


@dataclass(frozen=True)
class Operation:
    """A public operation of a service contract.

    Attributes:
        name: Method name, e.g. ``"sum"``.
        declaring_type: The contract (or class) that declares it.
        zero_factory: Builds the operation's zero value, or ``None`` when the
            zero value is ``None``.
    """

    name: str
    declaring_type: type
    zero_factory: Callable[[], Any] | None = field(default=None, compare=False)

    @property
    def qualified_name(self) -> str:
        return f"{self.declaring_type.__qualname__}.{self.name}"

    def zero_value(self) -> Any:
        """The default returned when no interceptor sets a value and the target is not reached."""
        return self.zero_factory() if self.zero_factory is not None else None

    @classmethod
    def from_function(cls, declaring_type: type, name: str, func: Callable[..., Any]) -> Operation:
        try:
            hints = typing.get_type_hints(func)
        except Exception:
            # Unresolvable forward references: fall back to a None zero value
            hints = {}
        return cls(name=name, declaring_type=declaring_type, zero_factory=_zero_factory_for(hints.get("return")))


@functools.cache
def operations_of(contract: type) -> dict[str, Operation]:
    """Public operations of *contract*, keyed by name.

    Only plain functions count; static methods, class methods, properties
    and underscore-prefixed members are not operations.
    """
    operations: dict[str, Operation] = {}
    for name in dir(contract):
        if name.startswith("_"):
            continue
        try:
            attr = inspect.getattr_static(contract, name)
        except AttributeError:
            continue
        if inspect.isfunction(attr):
            operations[name] = Operation.from_function(contract, name, attr)
    return operations


def operations_for(contracts: tuple[type, ...]) -> dict[str, Operation]:
    """Merge the operations of several contracts; the first contract declaring a name wins."""
    merged: dict[str, Operation] = {}
    for contract in contracts:
        for name, op in operations_of(contract).items():
            merged.setdefault(name, op)
    return merged
