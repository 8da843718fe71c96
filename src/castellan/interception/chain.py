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
"""Interceptor chains and the chain builder."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from typing import Any, overload

import structlog

from castellan.interception.resolver import InterceptorReferenceResolver
from castellan.interception.types import Interceptor, OnBehalfAware

logger = structlog.get_logger("castellan.interception")


class Chain(Sequence[Interceptor]):
    """Immutable, ordered sequence of interceptors for one component."""

    __slots__ = ("_interceptors",)

    def __init__(self, interceptors: Iterable[Interceptor] = ()) -> None:
        self._interceptors: tuple[Interceptor, ...] = tuple(interceptors)

    @overload
    def __getitem__(self, index: int) -> Interceptor: ...

    @overload
    def __getitem__(self, index: slice) -> Sequence[Interceptor]: ...

    def __getitem__(self, index: int | slice) -> Interceptor | Sequence[Interceptor]:
        return self._interceptors[index]

    def __len__(self) -> int:
        return len(self._interceptors)

    def __iter__(self) -> Iterator[Interceptor]:
        return iter(self._interceptors)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Chain):
            return self._interceptors == other._interceptors
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._interceptors)

    def __repr__(self) -> str:
        names = ", ".join(type(i).__name__ for i in self._interceptors)
        return f"Chain([{names}])"


EMPTY_CHAIN = Chain()
"""The canonical empty chain: the component is used without a proxy."""


class ChainBuilder:
    """Resolves a component's interceptor references into its :class:`Chain`.

    The builder reads ``model.interceptors`` as-is; the container freezes
    that list (``ComponentModel.begin_activation``) before calling
    :meth:`build`, so the result is deterministic for the component's
    lifetime.  References are resolved in declared order and never
    de-duplicated.
    """

    def __init__(self, resolver: InterceptorReferenceResolver) -> None:
        self._resolver = resolver

    def build(self, model: Any, context: Any = None) -> Chain:
        references = model.interceptors
        if not references:
            return EMPTY_CHAIN

        interceptors: list[Interceptor] = []
        for reference in references:
            interceptor = self._resolver.resolve(reference, model, context)
            if isinstance(interceptor, OnBehalfAware):
                interceptor.set_intercepted_component(model)
            interceptors.append(interceptor)

        chain = Chain(interceptors)
        logger.debug(
            "chain_built",
            component=model.key,
            size=len(chain),
            interceptors=[str(r) for r in references],
        )
        return chain
