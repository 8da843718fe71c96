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
"""Lifecycle management: @post_construct / @pre_destroy and the lifecycle coordinator."""

from __future__ import annotations

import inspect
import threading
from collections.abc import Callable
from enum import Enum, auto
from typing import Any, TypeVar

import structlog

from castellan.container.exceptions import ComponentCreationException, CyclicDependencyError
from castellan.interception.exceptions import DisposedError, NoTargetError
from castellan.kernel.exceptions import ConfigurationException

F = TypeVar("F", bound=Callable)

logger = structlog.get_logger("castellan.lifecycle")

_POST_CONSTRUCT = "__castellan_post_construct__"
_PRE_DESTROY = "__castellan_pre_destroy__"


def post_construct(func: F) -> F:
    """Mark a method to be called once the component instance is built.

    Runs before any call is allowed to reach the instance.
    """
    setattr(func, _POST_CONSTRUCT, True)
    return func


def pre_destroy(func: F) -> F:
    """Mark a method to be called exactly once when the component is disposed."""
    setattr(func, _PRE_DESTROY, True)
    return func


def _hook_names(cls: type, marker: str) -> list[str]:
    return [
        name for name, func in inspect.getmembers(cls, predicate=inspect.isfunction) if getattr(func, marker, False)
    ]


def has_pre_destroy_hooks(cls: type) -> bool:
    return bool(_hook_names(cls, _PRE_DESTROY))


def call_lifecycle_hooks(instance: Any, marker: str) -> int:
    """Call every method of *instance* carrying *marker*; return how many ran."""
    count = 0
    for name in _hook_names(type(instance), marker):
        result = getattr(instance, name)()
        if inspect.isawaitable(result):
            if inspect.iscoroutine(result):
                result.close()
            raise ComponentCreationException(
                subsystem="lifecycle",
                provider=type(instance).__qualname__,
                reason=f"lifecycle hook '{name}' is async; only synchronous hooks are supported",
            )
        count += 1
    return count


class LifecycleState(Enum):
    """``CREATED -> INITIALIZED -> ACTIVE -> DISPOSING -> DISPOSED``"""

    CREATED = auto()
    INITIALIZED = auto()
    ACTIVE = auto()
    DISPOSING = auto()
    DISPOSED = auto()


class DisposalPolicy(Enum):
    """What a proxy does with calls made after its component was disposed."""

    RAISE = "raise"
    """Fail with DisposedError before any interceptor runs."""

    INTERCEPT = "intercept"
    """Run the interceptors, but fail with DisposedError if the chain reaches the target."""

    @classmethod
    def parse(cls, value: str | DisposalPolicy | None) -> DisposalPolicy:
        if value is None:
            return cls.RAISE
        if isinstance(value, DisposalPolicy):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ConfigurationException(
                f"Unknown disposal policy '{value}'; expected one of: "
                + ", ".join(p.value for p in cls),
                code="CONFIG_DISPOSAL_POLICY",
                context={"value": value},
            ) from None


class LifecycleCoordinator:
    """Owns a component's target and runs its lifecycle hooks exactly once.

    The target is either supplied up front or built lazily by *factory* the
    first time it is needed.  Construction is serialized on *lock* (the
    container passes its activation lock, so every construction in a
    container shares one re-entrant lock).  Disposal is idempotent: the
    first caller runs ``@pre_destroy`` hooks, concurrent callers block until
    that has finished.

    Args:
        name: Component key, used in errors and log events.
        factory: Zero-argument callable building the target, or ``None``
            when the component has no backing target.
        target: An already-built and initialized target.
        policy: Behaviour of calls made after disposal.
        lock: Re-entrant lock guarding target construction.
    """

    def __init__(
        self,
        name: str,
        *,
        factory: Callable[[], Any] | None = None,
        target: Any = None,
        policy: DisposalPolicy = DisposalPolicy.RAISE,
        lock: threading.RLock | None = None,
    ) -> None:
        self._name = name
        self._factory = factory
        self._target = target
        self._policy = policy
        self._lock = lock if lock is not None else threading.RLock()
        self._state_lock = threading.Lock()
        self._disposed = threading.Event()
        self._disposing_thread: int | None = None
        self._constructing_thread: int | None = None
        self._state = LifecycleState.CREATED if target is None else LifecycleState.INITIALIZED

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def policy(self) -> DisposalPolicy:
        return self._policy

    @property
    def target(self) -> Any:
        """The target if it has been built, else ``None``. Never builds it."""
        return self._target

    @property
    def has_backing_target(self) -> bool:
        return self._target is not None or self._factory is not None

    @property
    def is_disposed(self) -> bool:
        return self._state in (LifecycleState.DISPOSING, LifecycleState.DISPOSED)

    @property
    def intercepts_after_disposal(self) -> bool:
        """True when calls after disposal still run through the interceptors."""
        return self._policy is DisposalPolicy.INTERCEPT

    def ensure_not_disposed(self, operation: str | None = None) -> None:
        if self.is_disposed:
            raise DisposedError(self._name, operation)

    def initialize(self, operation: str | None = None) -> Any:
        """Return the target, building it and running ``@post_construct`` on first use."""
        target = self._target
        if target is not None and not self.is_disposed:
            return target

        self.ensure_not_disposed(operation)
        if self._factory is None:
            raise NoTargetError(self._name, operation)

        with self._lock:
            # Double-check inside lock
            self.ensure_not_disposed(operation)
            if self._target is None:
                if self._constructing_thread == threading.get_ident():
                    # The target's own constructor called back into its proxy
                    raise CyclicDependencyError(
                        chain=[self._name], current=self._name, edges=["target construction"]
                    )
                self._constructing_thread = threading.get_ident()
                try:
                    instance = self._factory()
                    hooks = call_lifecycle_hooks(instance, _POST_CONSTRUCT)
                finally:
                    self._constructing_thread = None
                self._target = instance
                with self._state_lock:
                    if self._state is LifecycleState.CREATED:
                        self._state = LifecycleState.INITIALIZED
                logger.debug("target_initialized", component=self._name, hooks=hooks)
            return self._target

    def acquire_target(self, operation: str | None = None) -> Any:
        """Return the target for a call that is about to reach it."""
        target = self.initialize(operation)
        if self._state is LifecycleState.INITIALIZED:
            with self._state_lock:
                if self._state is LifecycleState.INITIALIZED:
                    self._state = LifecycleState.ACTIVE
        return target

    def dispose(self) -> bool:
        """Dispose the component; return ``True`` only for the call that did the work."""
        with self._state_lock:
            first = not self.is_disposed
            if first:
                self._state = LifecycleState.DISPOSING
                self._disposing_thread = threading.get_ident()

        if not first:
            # Re-entrant disposal from a @pre_destroy hook must not wait on itself
            if self._disposing_thread != threading.get_ident():
                self._disposed.wait()
            return False

        try:
            with self._lock:
                target = self._target
                if target is not None:
                    hooks = call_lifecycle_hooks(target, _PRE_DESTROY)
                    logger.debug("target_disposed", component=self._name, hooks=hooks)
        finally:
            with self._state_lock:
                self._state = LifecycleState.DISPOSED
                self._target = None
            self._disposed.set()
        return True

    def __repr__(self) -> str:
        return f"LifecycleCoordinator(name={self._name!r}, state={self._state.name})"
