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
"""Creation context — the explicit activation stack used for cycle detection."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from castellan.container.exceptions import CyclicDependencyError


@dataclass(frozen=True)
class CreationFrame:
    """One component on the resolution path and the edge that reached it."""

    key: str
    via: str
    interceptor: str | None = None


class CreationContext:
    """Components currently resolving along one resolution path.

    A context is created by each public ``resolve`` call and handed
    explicitly through every nested resolution.  Frames are pushed on entry
    and popped in ``finally``, so a failed activation never leaves a stale
    marker behind.
    """

    __slots__ = ("_frames",)

    def __init__(self) -> None:
        self._frames: list[CreationFrame] = []

    @property
    def keys(self) -> tuple[str, ...]:
        return tuple(f.key for f in self._frames)

    @property
    def requester(self) -> str | None:
        """Key of the component whose activation is asking, if any."""
        return self._frames[-1].key if self._frames else None

    def is_resolving(self, key: str) -> bool:
        return any(f.key == key for f in self._frames)

    def cycle_error(self, key: str, *, via: str, interceptor: str | None = None) -> CyclicDependencyError:
        """Build the error for re-entering *key*, naming the interceptor that closed the loop."""
        start = next((i for i, f in enumerate(self._frames) if f.key == key), 0)
        loop_interceptors = [f.interceptor for f in self._frames[start + 1 :] if f.interceptor]
        if interceptor:
            loop_interceptors.append(interceptor)
        return CyclicDependencyError(
            chain=self.keys,
            current=key,
            edges=[*(f.via for f in self._frames), via],
            interceptor=loop_interceptors[0] if loop_interceptors else None,
        )

    @contextmanager
    def entering(self, key: str, *, via: str, interceptor: str | None = None) -> Iterator[None]:
        """Mark *key* as resolving for the duration of the block."""
        if self.is_resolving(key):
            raise self.cycle_error(key, via=via, interceptor=interceptor)
        self._frames.append(CreationFrame(key, via, interceptor))
        try:
            yield
        finally:
            self._frames.pop()

    def __repr__(self) -> str:
        return f"CreationContext({' -> '.join(self.keys) or '<empty>'})"
