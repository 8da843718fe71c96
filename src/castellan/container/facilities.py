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
"""Built-in facilities that attach interceptors to components as they register."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

import structlog

from castellan.container.model import ComponentModel, InterceptorReference
from castellan.core.config import Config
from castellan.interception.pointcut import matches_pointcut
from castellan.interception.types import is_interceptor
from castellan.kernel.exceptions import ConfigurationException

if TYPE_CHECKING:
    from castellan.container.container import Container

logger = structlog.get_logger("castellan.facilities")


class _InterceptorFacility:
    """Shared plumbing: subscribe on init, unsubscribe on terminate."""

    def __init__(self, interceptor: str | type | InterceptorReference | None = None, *, first: bool = False) -> None:
        self._reference = InterceptorReference.of(interceptor) if interceptor is not None else None
        self._first = first
        self._container: Container | None = None

    @property
    def reference(self) -> InterceptorReference | None:
        return self._reference

    def init(self, container: Container, config: Config) -> None:
        if self._reference is None:
            configured = config.get("interceptor")
            if not configured:
                raise ConfigurationException(
                    f"{type(self).__name__} needs an interceptor",
                    code="CONFIG_FACILITY_INTERCEPTOR",
                )
            self._reference = InterceptorReference.for_key(str(configured))
        position = str(config.get("position", "first" if self._first else "last")).lower()
        if position not in ("first", "last"):
            raise ConfigurationException(
                f"'{config.prefix}.position' must be 'first' or 'last', got {position!r}",
                code="CONFIG_FACILITY_POSITION",
                context={"position": position},
            )
        self._first = position == "first"
        self._configure(config)
        self._container = container
        container.on_component_registered(self._on_component_registered)

    def terminate(self) -> None:
        if self._container is not None:
            self._container.remove_listener(self._on_component_registered)
            self._container = None

    def _configure(self, config: Config) -> None:
        pass

    def _applies_to(self, model: ComponentModel) -> bool:
        raise NotImplementedError

    def _on_component_registered(self, model: ComponentModel) -> None:
        if not self._applies_to(model):
            return
        if model.add_interceptor(self._reference, first=self._first):  # type: ignore[arg-type]
            logger.debug(
                "interceptor_attached",
                facility=type(self).__name__,
                component=model.key,
                interceptor=str(self._reference),
            )


class KeyInterceptorFacility(_InterceptorFacility):
    """Attach one interceptor to the components registered under the given keys.

    Config keys: ``interceptor`` (interceptor component key), ``keys``
    (list of component keys), ``position`` (``first`` or ``last``).
    """

    def __init__(
        self,
        interceptor: str | type | InterceptorReference | None = None,
        keys: Iterable[str] = (),
        *,
        first: bool = False,
    ) -> None:
        super().__init__(interceptor, first=first)
        self._keys = set(keys)

    def _configure(self, config: Config) -> None:
        self._keys.update(config.get_list("keys"))

    def _applies_to(self, model: ComponentModel) -> bool:
        return model.key in self._keys


class PointcutInterceptorFacility(_InterceptorFacility):
    """Attach one interceptor to every component whose implementation matches a pointcut.

    The pattern is matched against the qualified name of the component's
    implementation (or its first service) and against its key.  Interceptor
    components are never matched, so an interceptor is not asked to
    intercept itself.

    Config keys: ``interceptor``, ``pointcut`` (defaults to ``**``),
    ``position``.
    """

    def __init__(
        self,
        interceptor: str | type | InterceptorReference | None = None,
        pointcut: str = "**",
        *,
        first: bool = False,
    ) -> None:
        super().__init__(interceptor, first=first)
        self._pointcut = pointcut

    @property
    def pointcut(self) -> str:
        return self._pointcut

    def _configure(self, config: Config) -> None:
        self._pointcut = str(config.get("pointcut", self._pointcut))

    def _applies_to(self, model: ComponentModel) -> bool:
        if is_interceptor(model.implementation):
            return False
        return matches_pointcut(self._pointcut, model.qualified_name) or matches_pointcut(self._pointcut, model.key)
