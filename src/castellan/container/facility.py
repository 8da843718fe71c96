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
"""Facility — pluggable container extension point."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from castellan.core.config import Config

if TYPE_CHECKING:
    from castellan.container.container import Container


@runtime_checkable
class Facility(Protocol):
    """Extend the container without touching individual registrations.

    ``init`` is called once by ``Container.add_facility`` with the container
    and the facility's configuration section; a facility typically
    subscribes to ``on_component_registered`` there and adds interceptor
    references to the models it is shown.  ``terminate`` is called when the
    container is disposed, in reverse order of addition.
    """

    def init(self, container: Container, config: Config) -> None: ...

    def terminate(self) -> None: ...
