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
"""Stereotype decorators and class-level interceptor declarations.

- @component: generic managed component
- @service: business logic component
- @interceptor: a component implementing ``intercept(context)``
- @intercepted_by: interceptor references declared on the class itself
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar, overload

from castellan.container.model import InterceptorReference
from castellan.container.types import Scope

T = TypeVar("T", bound=type)


def _make_stereotype(stereotype_name: str) -> Callable[..., Any]:
    """Factory that creates a stereotype decorator with the given name."""

    @overload
    def stereotype(cls: T) -> T: ...

    @overload
    def stereotype(
        *,
        name: str = "",
        scope: Scope = Scope.SINGLETON,
        service: type | tuple[type, ...] | None = None,
    ) -> Callable[[T], T]: ...

    def stereotype(
        cls: T | None = None,
        *,
        name: str = "",
        scope: Scope = Scope.SINGLETON,
        service: type | tuple[type, ...] | None = None,
    ) -> T | Callable[[T], T]:
        def decorator(cls: T) -> T:
            cls.__castellan_stereotype__ = stereotype_name  # type: ignore[attr-defined]
            cls.__castellan_scope__ = scope  # type: ignore[attr-defined]
            if name:
                cls.__castellan_component_name__ = name  # type: ignore[attr-defined]
            if service is not None:
                cls.__castellan_services__ = service if isinstance(service, tuple) else (service,)  # type: ignore[attr-defined]
            return cls

        if cls is not None:
            return decorator(cls)
        return decorator

    stereotype.__name__ = stereotype_name
    stereotype.__qualname__ = stereotype_name
    return stereotype


component = _make_stereotype("component")
service = _make_stereotype("service")
interceptor = _make_stereotype("interceptor")


def primary(cls: T) -> T:
    """Prefer this implementation when several components provide the same service."""
    cls.__castellan_primary__ = True  # type: ignore[attr-defined]
    return cls


def intercepted_by(*references: str | type | InterceptorReference) -> Callable[[T], T]:
    """Declare interceptors on a component class, in chain order.

    Usage::

        @intercepted_by("audit", LoggingInterceptor)
        class CalculatorService:
            def sum(self, a: int, b: int) -> int:
                return a + b

    The references seed the component's interceptor list at registration,
    before facilities see it.
    """
    if not references:
        raise TypeError("intercepted_by requires at least one interceptor reference")
    refs = tuple(InterceptorReference.of(r) for r in references)

    def decorator(cls: T) -> T:
        existing = getattr(cls, "__castellan_interceptors__", ())
        cls.__castellan_interceptors__ = (*existing, *refs)  # type: ignore[attr-defined]
        return cls

    return decorator


def declared_interceptors(cls: type | None) -> tuple[InterceptorReference, ...]:
    """Interceptor references declared on *cls* (and inherited from its bases)."""
    if cls is None:
        return ()
    return tuple(getattr(cls, "__castellan_interceptors__", ()))


class Qualifier:
    """Used with typing.Annotated to inject a specific component by key.

    Usage::

        def __init__(self, calc: Annotated[ICalcService, Qualifier("calculator")]):
            ...
    """

    __slots__ = ("name",)

    def __init__(self, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:
        return f"Qualifier({self.name!r})"
