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
"""Component model — registration metadata and interceptor references."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

import structlog

from castellan.container.types import ComponentState, Scope

logger = structlog.get_logger("castellan.container")


@dataclass(frozen=True)
class InterceptorReference:
    """Declarative pointer to an interceptor, resolved lazily by key or by type."""

    key: str | None = None
    interceptor_type: type | None = None

    def __post_init__(self) -> None:
        if (self.key is None) == (self.interceptor_type is None):
            raise ValueError("InterceptorReference needs exactly one of key or interceptor_type")

    @classmethod
    def for_key(cls, key: str) -> InterceptorReference:
        return cls(key=key)

    @classmethod
    def for_type(cls, interceptor_type: type) -> InterceptorReference:
        return cls(interceptor_type=interceptor_type)

    @classmethod
    def of(cls, value: str | type | InterceptorReference) -> InterceptorReference:
        """Coerce a key, a type, or an existing reference."""
        if isinstance(value, InterceptorReference):
            return value
        if isinstance(value, str):
            return cls.for_key(value)
        if isinstance(value, type):
            return cls.for_type(value)
        raise TypeError(f"Cannot build an InterceptorReference from {value!r}")

    def __str__(self) -> str:
        if self.key is not None:
            return f"'{self.key}'"
        return f"<{self.interceptor_type.__qualname__}>"  # type: ignore[union-attr]


@dataclass(eq=False)
class ComponentModel:
    """Metadata for a registered component.

    The interceptor reference list may only change while the model is
    ``REGISTERED``; once activation begins the list is frozen and further
    mutation is ignored.
    """

    key: str
    services: tuple[type, ...]
    implementation: type | None = None
    scope: Scope = Scope.SINGLETON
    primary: bool = False
    disposal_policy: Any = None
    extended_properties: dict[str, Any] = field(default_factory=dict)
    state: ComponentState = ComponentState.UNREGISTERED
    _interceptors: list[InterceptorReference] = field(default_factory=list, repr=False)
    _frozen: bool = field(default=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def interceptors(self) -> tuple[InterceptorReference, ...]:
        """The declared interceptor references, in chain order."""
        return tuple(self._interceptors)

    @property
    def has_interceptors(self) -> bool:
        return bool(self._interceptors)

    @property
    def is_class_proxy(self) -> bool:
        """True when the component is exposed as its implementation class."""
        return self.implementation is not None and self.services == (self.implementation,)

    @property
    def qualified_name(self) -> str:
        """``module.Class`` name of the implementation, or of the first service."""
        cls = self.implementation or self.services[0]
        return f"{cls.__module__}.{cls.__qualname__}"

    def add_interceptor(self, reference: str | type | InterceptorReference, *, first: bool = False) -> bool:
        """Append (or prepend) an interceptor reference.

        Returns ``False`` without changing anything once activation began.
        """
        ref = InterceptorReference.of(reference)
        with self._lock:
            if not self._is_mutable():
                logger.debug("interceptor_mutation_ignored", component=self.key, interceptor=str(ref))
                return False
            if first:
                self._interceptors.insert(0, ref)
            else:
                self._interceptors.append(ref)
            return True

    def insert_interceptor(self, index: int, reference: str | type | InterceptorReference) -> bool:
        """Insert an interceptor reference at *index*; same freezing rule as :meth:`add_interceptor`."""
        ref = InterceptorReference.of(reference)
        with self._lock:
            if not self._is_mutable():
                logger.debug("interceptor_mutation_ignored", component=self.key, interceptor=str(ref))
                return False
            self._interceptors.insert(index, ref)
            return True

    def begin_activation(self) -> tuple[InterceptorReference, ...]:
        """Freeze the reference list and move to ``ACTIVATING``."""
        with self._lock:
            self.state = ComponentState.ACTIVATING
            self._frozen = True
            return tuple(self._interceptors)

    @property
    def frozen(self) -> bool:
        """True once the first activation has begun."""
        return self._frozen

    def _is_mutable(self) -> bool:
        return not self._frozen and self.state in (ComponentState.UNREGISTERED, ComponentState.REGISTERED)

    def __repr__(self) -> str:
        impl = self.implementation.__qualname__ if self.implementation else None
        services = [s.__qualname__ for s in self.services]
        return f"ComponentModel(key={self.key!r}, services={services}, implementation={impl}, state={self.state.name})"
