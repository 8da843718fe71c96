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
"""Proxy factory — structural forwarding wrappers around interceptor chains.

A :class:`ComponentProxy` is not generated code.  It holds a table from
operation name to a dispatcher closure; attribute access to an operation
returns the dispatcher, which builds an :class:`InvocationContext` and runs
the chain.  Everything that is not an operation (properties, data
attributes, private members) is read straight from the target.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, Protocol

from castellan.interception.exceptions import DisposedError
from castellan.interception.invocation import InvocationContext, dispatch
from castellan.interception.types import Interceptor, Operation, operations_for

_SLOTS = (
    "_castellan_name",
    "_castellan_class",
    "_castellan_model",
    "_castellan_chain",
    "_castellan_source",
    "_castellan_operations",
    "_castellan_dispatchers",
)


class ManagedTarget(Protocol):
    """What a proxy needs from the object owning its target (a lifecycle coordinator)."""

    @property
    def target(self) -> Any: ...

    @property
    def is_disposed(self) -> bool: ...

    @property
    def intercepts_after_disposal(self) -> bool: ...

    def initialize(self, operation: str | None = None) -> Any: ...

    def acquire_target(self, operation: str | None = None) -> Any: ...

    def dispose(self) -> bool: ...


class ComponentProxy:
    """Handle returned to callers in place of an intercepted component.

    ``isinstance(proxy, Service)`` holds for the component's services: the
    proxy reports the implementation class (or, without one, its first
    service contract) as its ``__class__`` without building the target.
    """

    __slots__ = _SLOTS

    def __init__(
        self,
        *,
        name: str,
        proxy_class: type,
        operations: dict[str, Operation],
        chain: Sequence[Interceptor],
        source: ManagedTarget,
        model: Any = None,
    ) -> None:
        object.__setattr__(self, "_castellan_name", name)
        object.__setattr__(self, "_castellan_class", proxy_class)
        object.__setattr__(self, "_castellan_model", model)
        object.__setattr__(self, "_castellan_chain", chain)
        object.__setattr__(self, "_castellan_source", source)
        object.__setattr__(self, "_castellan_operations", dict(operations))
        dispatchers = {op_name: _make_dispatcher(self, op) for op_name, op in operations.items()}
        object.__setattr__(self, "_castellan_dispatchers", dispatchers)

    @property  # type: ignore[misc]
    def __class__(self) -> type:
        return object.__getattribute__(self, "_castellan_class")

    def __getattr__(self, name: str) -> Any:
        dispatchers = object.__getattribute__(self, "_castellan_dispatchers")
        dispatcher = dispatchers.get(name)
        if dispatcher is not None:
            return dispatcher
        if name.startswith("__") and name.endswith("__"):
            # Protocol lookups (copy, pickle, ...) must not build the target
            raise AttributeError(name)
        source: ManagedTarget = object.__getattribute__(self, "_castellan_source")
        return getattr(source.initialize(name), name)

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _SLOTS:
            object.__setattr__(self, name, value)
            return
        source: ManagedTarget = object.__getattribute__(self, "_castellan_source")
        setattr(source.initialize(name), name, value)

    def __delattr__(self, name: str) -> None:
        source: ManagedTarget = object.__getattribute__(self, "_castellan_source")
        delattr(source.initialize(name), name)

    def __dir__(self) -> list[str]:
        operations = object.__getattribute__(self, "_castellan_operations")
        source: ManagedTarget = object.__getattribute__(self, "_castellan_source")
        names = set(operations)
        if source.target is not None:
            names.update(dir(source.target))
        return sorted(names)

    def __repr__(self) -> str:
        name = object.__getattribute__(self, "_castellan_name")
        cls = object.__getattribute__(self, "_castellan_class")
        chain = object.__getattribute__(self, "_castellan_chain")
        return f"<ComponentProxy {name!r} of {cls.__qualname__} with {len(chain)} interceptor(s)>"


def _make_dispatcher(proxy: ComponentProxy, operation: Operation) -> Callable[..., Any]:
    name = object.__getattribute__(proxy, "_castellan_name")
    chain = object.__getattribute__(proxy, "_castellan_chain")
    source: ManagedTarget = object.__getattribute__(proxy, "_castellan_source")
    model = object.__getattribute__(proxy, "_castellan_model")

    def invoke(*args: Any, **kwargs: Any) -> Any:
        if source.is_disposed and not source.intercepts_after_disposal:
            raise DisposedError(name, operation.name)
        context = InvocationContext(
            operation=operation,
            args=args,
            kwargs=kwargs,
            chain=chain,
            target_source=source,
            proxy=proxy,
            component=model,
        )
        return dispatch(context)

    invoke.__name__ = operation.name
    invoke.__qualname__ = operation.qualified_name
    return invoke


class ProxyFactory:
    """Builds :class:`ComponentProxy` handles for component models.

    Interface proxies (services are contracts distinct from the
    implementation) expose the operations of every service; class proxies
    (the implementation is its own service) expose every public method of
    the implementation.
    """

    def create(
        self,
        contracts: Sequence[type],
        chain: Sequence[Interceptor],
        source: ManagedTarget,
        *,
        name: str | None = None,
        proxy_class: type | None = None,
        model: Any = None,
    ) -> ComponentProxy:
        if not contracts:
            raise ValueError("ProxyFactory.create requires at least one service contract")
        contracts = tuple(contracts)
        return ComponentProxy(
            name=name or contracts[0].__qualname__,
            proxy_class=proxy_class or contracts[0],
            operations=operations_for(contracts),
            chain=chain,
            source=source,
            model=model,
        )

    def create_for(self, model: Any, chain: Sequence[Interceptor], source: ManagedTarget) -> ComponentProxy:
        """Create the proxy for a registered component model."""
        contracts = (model.implementation,) if model.is_class_proxy else tuple(model.services)
        return self.create(
            contracts,
            chain,
            source,
            name=model.key,
            proxy_class=model.implementation or model.services[0],
            model=model,
        )


# ---------------------------------------------------------------------------
# Handle helpers
# ---------------------------------------------------------------------------


def is_proxy(obj: Any) -> bool:
    """True if *obj* is a :class:`ComponentProxy` handle."""
    return type(obj) is ComponentProxy


def _require_proxy(obj: Any) -> ComponentProxy:
    if not is_proxy(obj):
        raise TypeError(f"{type(obj).__qualname__} is not a component proxy")
    return obj


def get_chain(proxy: Any) -> Sequence[Interceptor]:
    return object.__getattribute__(_require_proxy(proxy), "_castellan_chain")


def get_component_model(proxy: Any) -> Any:
    return object.__getattribute__(_require_proxy(proxy), "_castellan_model")


def get_target_source(proxy: Any) -> ManagedTarget:
    return object.__getattribute__(_require_proxy(proxy), "_castellan_source")


def get_target(proxy: Any) -> Any:
    """The proxied target, or ``None`` if it has not been built (or never will be)."""
    return get_target_source(proxy).target


def dispose(proxy: Any) -> bool:
    """Dispose the component behind *proxy*; only the first call does any work."""
    return get_target_source(proxy).dispose()
