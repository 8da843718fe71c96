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
"""Component container: registration, activation, interception and release."""

from __future__ import annotations

import difflib
import functools
import inspect
import threading
import types
import typing
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Annotated, Any, TypeVar, Union, cast, get_args, get_origin

import structlog

from castellan.container.activation import CreationContext
from castellan.container.exceptions import (
    ComponentCreationException,
    ComponentRegistrationError,
    ResolutionError,
)
from castellan.container.facility import Facility
from castellan.container.lifecycle import DisposalPolicy, LifecycleCoordinator, has_pre_destroy_hooks
from castellan.container.model import ComponentModel, InterceptorReference
from castellan.container.stereotypes import Qualifier, declared_interceptors
from castellan.container.types import ComponentState, Scope
from castellan.core.config import Config
from castellan.interception.chain import EMPTY_CHAIN, Chain, ChainBuilder
from castellan.interception.proxy import ProxyFactory, is_proxy
from castellan.interception.proxy import dispose as dispose_proxy
from castellan.interception.resolver import InterceptorReferenceResolver
from castellan.logging.structlog_adapter import StructlogAdapter

T = TypeVar("T")

ComponentListener = Callable[[ComponentModel], None]

logger = structlog.get_logger("castellan.container")


@dataclass
class _Tracked:
    """A handed-out component instance and the coordinator that owns its lifecycle."""

    handle: Any
    model: ComponentModel
    coordinator: LifecycleCoordinator


class Container:
    """Inversion-of-control container with interceptor support.

    Components are registered by key and by the service types they expose.
    A component whose model carries interceptor references is handed out
    as a proxy: every public operation of its services runs through the
    component's interceptor chain before (optionally) reaching the target,
    which is built lazily on first use.  Components without interceptors
    are handed out as plain instances.

    Activation happens under a single re-entrant lock.  Each public
    ``resolve`` starts a fresh :class:`CreationContext` that is passed
    through every nested resolution, so a component re-entered before it
    is assembled fails fast with :class:`CyclicDependencyError`, while a
    singleton that is already assembled is simply returned.

    Facilities (see :class:`Facility`) extend the container by observing
    registrations and decorating component models.
    """

    def __init__(self, config: Config | None = None) -> None:
        self._config = config if config is not None else Config({})
        self._models: dict[str, ComponentModel] = {}
        self._by_service: dict[type, list[ComponentModel]] = {}
        self._listeners: list[ComponentListener] = []
        self._facilities: dict[str, Facility] = {}
        self._chains: dict[str, Chain] = {}
        self._singletons: dict[str, Any] = {}
        self._tracked: dict[int, _Tracked] = {}
        self._tracking_lock = threading.Lock()
        self._lock = threading.RLock()
        self._disposed = False

        self._default_policy = DisposalPolicy.parse(self._config.get("castellan.proxy.disposal-policy"))
        self._chain_builder = ChainBuilder(InterceptorReferenceResolver(self))
        self._proxy_factory = ProxyFactory()

        if self._config.get_section("castellan.logging"):
            StructlogAdapter().configure(self._config)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def config(self) -> Config:
        return self._config

    @property
    def models(self) -> tuple[ComponentModel, ...]:
        """Registered component models, in registration order."""
        return tuple(self._models.values())

    @property
    def facilities(self) -> dict[str, Facility]:
        return dict(self._facilities)

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def has_component(self, key: str) -> bool:
        return key in self._models

    def get_model(self, key: str) -> ComponentModel:
        model = self._models.get(key)
        if model is None:
            raise ResolutionError(key=key, suggestions=self._similar_keys(key))
        return model

    def chain_for(self, key: str) -> Chain | None:
        """The interceptor chain built at first activation of *key*, if any."""
        return self._chains.get(key)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        implementation: type | None = None,
        *,
        service: type | Iterable[type] | None = None,
        name: str = "",
        scope: Scope | None = None,
        interceptors: Iterable[str | type | InterceptorReference] = (),
        primary: bool | None = None,
        disposal_policy: str | DisposalPolicy | None = None,
    ) -> ComponentModel:
        """Register a component and return its model.

        Args:
            implementation: Concrete class, or ``None`` for a service that
                is implemented entirely by its interceptors.
            service: Service type(s) the component is resolvable by.
                Defaults to the ``service=`` of its stereotype, else the
                implementation itself.
            name: Component key.  Defaults to the stereotype ``name=``,
                else the implementation's (or service's) qualified name.
            scope: Overrides the stereotype scope.
            interceptors: Interceptor references appended after the ones
                declared with ``@intercepted_by``.
            primary: Prefer this component for service-type lookups.
            disposal_policy: ``"raise"`` or ``"intercept"``; overrides
                ``castellan.proxy.disposal-policy`` for this component.
        """
        services = self._services_for(implementation, service)
        provider = name or getattr(implementation or services[0], "__qualname__", repr(services[0]))

        if implementation is not None:
            for contract in services:
                if not _satisfies(implementation, contract):
                    raise ComponentRegistrationError(
                        provider,
                        f"{implementation.__qualname__} does not implement service {contract.__qualname__}",
                    )

        key = name or getattr(implementation, "__castellan_component_name__", "") or _default_key(
            implementation or services[0]
        )
        model = ComponentModel(
            key=key,
            services=services,
            implementation=implementation,
            scope=scope or getattr(implementation, "__castellan_scope__", None) or Scope.SINGLETON,
            primary=primary if primary is not None else bool(getattr(implementation, "__castellan_primary__", False)),
            disposal_policy=DisposalPolicy.parse(disposal_policy) if disposal_policy is not None else None,
        )
        for ref in (*declared_interceptors(implementation), *interceptors):
            model.add_interceptor(ref)
        return self.register_model(model)

    def register_model(self, model: ComponentModel) -> ComponentModel:
        """Register a prepared model and notify registration listeners."""
        with self._lock:
            if self._disposed:
                raise ComponentRegistrationError(model.key, "the container has been disposed")
            if model.state is not ComponentState.UNREGISTERED:
                raise ComponentRegistrationError(model.key, f"model is already {model.state.name}")
            if model.key in self._models:
                raise ComponentRegistrationError(model.key, "a component with this key is already registered")

            self._models[model.key] = model
            for contract in model.services:
                self._by_service.setdefault(contract, []).append(model)
            model.state = ComponentState.REGISTERED
            logger.debug(
                "component_registered",
                component=model.key,
                services=[s.__qualname__ for s in model.services],
                interceptors=[str(r) for r in model.interceptors],
            )
            # Listeners run before any activation can freeze the model
            for listener in list(self._listeners):
                listener(model)
        return model

    def on_component_registered(self, listener: ComponentListener) -> ComponentListener:
        """Subscribe to registrations; listeners run in subscription order."""
        self._listeners.append(listener)
        return listener

    def remove_listener(self, listener: ComponentListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def add_facility(self, name: str, facility: Facility, config: Config | dict[str, Any] | None = None) -> Facility:
        """Add and initialize a facility.

        Without an explicit *config* the facility receives the
        ``castellan.facilities.<name>`` section of the container config.
        """
        if name in self._facilities:
            raise ComponentRegistrationError(name, "a facility with this name has already been added")
        if config is None:
            facility_config = self._config.section(f"castellan.facilities.{name}")
        elif isinstance(config, Config):
            facility_config = config
        else:
            facility_config = Config(config, prefix=f"castellan.facilities.{name}")

        facility.init(self, facility_config)
        self._facilities[name] = facility
        logger.info("facility_added", facility=name, type=type(facility).__qualname__)
        return facility

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, key_or_service: str | type[T]) -> T:
        """Resolve a component by key or by service type."""
        if isinstance(key_or_service, str):
            return cast(T, self.resolve_by_name(key_or_service))
        return cast(T, self.resolve_service_in(CreationContext(), key_or_service, via="resolve()"))

    def resolve_by_name(self, key: str) -> Any:
        """Resolve a component by its registered key."""
        return self.resolve_key_in(CreationContext(), key, via="resolve()")

    def resolve_all(self, service: type[T]) -> list[T]:
        """Resolve every component registered for *service*, in registration order."""
        return self._resolve_all_in(CreationContext(), service, via="resolve_all()")

    def resolve_key_in(
        self,
        context: CreationContext | None,
        key: str,
        *,
        via: str,
        interceptor: str | None = None,
    ) -> Any:
        """Resolve *key* as part of an ongoing resolution."""
        context = context if context is not None else CreationContext()
        model = self._models.get(key)
        if model is None:
            raise ResolutionError(key=key, required_by=context.requester, suggestions=self._similar_keys(key))
        return self._activate(model, context, via=via, interceptor=interceptor)

    def resolve_service_in(
        self,
        context: CreationContext | None,
        service: type,
        *,
        via: str,
        interceptor: str | None = None,
    ) -> Any:
        """Resolve *service* as part of an ongoing resolution.

        Candidates are ordered primary-first, then by registration.  The
        first candidate not already resolving on this path is chosen; when
        every candidate is, the first one is re-entered and fails as a cycle.
        """
        context = context if context is not None else CreationContext()
        candidates = self._candidates(service)
        if not candidates:
            raise ResolutionError(
                service=service,
                required_by=context.requester,
                suggestions=self._similar_services(getattr(service, "__name__", "")),
            )
        chosen = next((m for m in candidates if not context.is_resolving(m.key)), candidates[0])
        return self._activate(chosen, context, via=via, interceptor=interceptor)

    def _resolve_all_in(self, context: CreationContext, service: type, *, via: str) -> list[Any]:
        return [self._activate(m, context, via=via) for m in list(self._by_service.get(service, ()))]

    def _candidates(self, service: type) -> list[ComponentModel]:
        registered = list(self._by_service.get(service, ()))
        return [m for m in registered if m.primary] + [m for m in registered if not m.primary]

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    def _activate(
        self,
        model: ComponentModel,
        context: CreationContext,
        *,
        via: str,
        interceptor: str | None = None,
    ) -> Any:
        if model.scope is Scope.SINGLETON:
            handle = self._singletons.get(model.key)
            if handle is not None:
                return handle

        with self._lock:
            if self._disposed:
                raise ComponentCreationException("container", model.key, "the container has been disposed")
            if model.scope is Scope.SINGLETON:
                # Double-check inside lock
                handle = self._singletons.get(model.key)
                if handle is not None:
                    return handle
            if context.is_resolving(model.key) or model.state is ComponentState.ACTIVATING:
                error = context.cycle_error(model.key, via=via, interceptor=interceptor)
                logger.warning("cyclic_dependency", component=model.key, error=error)
                raise error

            previous_state = model.state
            with context.entering(model.key, via=via, interceptor=interceptor):
                try:
                    chain = self._chains.get(model.key)
                    if chain is None:
                        model.begin_activation()
                        chain = self._chain_builder.build(model, context)
                        self._chains[model.key] = chain
                    else:
                        model.state = ComponentState.ACTIVATING
                    handle, coordinator = self._assemble(model, chain, context)
                except BaseException:
                    model.state = previous_state
                    raise

            if model.scope is Scope.SINGLETON:
                self._singletons[model.key] = handle
            # Hook-less transient instances are handed out untracked
            if model.scope is Scope.SINGLETON or chain or has_pre_destroy_hooks(type(handle)):
                self._track(handle, model, coordinator)
            model.state = ComponentState.ACTIVE

        logger.debug(
            "component_activated",
            component=model.key,
            scope=model.scope.name,
            interceptors=len(chain),
            proxied=chain is not EMPTY_CHAIN,
        )
        return handle

    def _assemble(
        self, model: ComponentModel, chain: Chain, context: CreationContext
    ) -> tuple[Any, LifecycleCoordinator]:
        """Build the handle for one activation: a proxy when intercepted, else the instance."""
        policy = model.disposal_policy or self._default_policy

        if not chain:
            if model.implementation is None:
                raise ComponentCreationException(
                    "activation",
                    model.key,
                    "component has neither an implementation nor interceptors",
                )
            coordinator = LifecycleCoordinator(
                model.key,
                factory=functools.partial(self._construct, model, context),
                policy=policy,
                lock=self._lock,
            )
            return coordinator.initialize(), coordinator

        factory = None
        if model.implementation is not None:
            factory = functools.partial(self._construct_target, model)
        coordinator = LifecycleCoordinator(model.key, factory=factory, policy=policy, lock=self._lock)
        return self._proxy_factory.create_for(model, chain, coordinator), coordinator

    def _construct_target(self, model: ComponentModel) -> Any:
        """Build the target behind a proxy on first use."""
        context = CreationContext()
        with context.entering(model.key, via="target construction"):
            return self._construct(model, context)

    def _construct(self, model: ComponentModel, context: CreationContext) -> Any:
        """Create an instance, resolving constructor dependencies by type hints."""
        impl = cast(type, model.implementation)
        init = impl.__init__  # type: ignore[misc]
        if init is object.__init__:
            return impl()

        hints = typing.get_type_hints(init, include_extras=True)
        hints.pop("return", None)
        sig = inspect.signature(init)

        kwargs: dict[str, Any] = {}
        for param_name, param_type in hints.items():
            param = sig.parameters.get(param_name)
            has_default = param is not None and param.default is not inspect.Parameter.empty
            via = f"parameter '{param_name}' of {impl.__qualname__}.__init__()"
            try:
                kwargs[param_name] = self._resolve_param(context, param_type, via=via)
            except ResolutionError as exc:
                if has_default:
                    continue
                if exc.required_by is not None and exc.required_by != model.key:
                    raise
                raise ResolutionError(
                    service=param_type if isinstance(param_type, type) else None,
                    key=exc.key,
                    required_by=f"{impl.__qualname__}.__init__()",
                    parameter=f"{param_name}: {getattr(param_type, '__name__', repr(param_type))}",
                    suggestions=exc.suggestions,
                ) from None
        return impl(**kwargs)

    def _resolve_param(self, context: CreationContext, param_type: Any, *, via: str) -> Any:
        """Resolve a single parameter, handling Annotated, Optional, and list."""
        # Handle Annotated[T, Qualifier("key")]
        if get_origin(param_type) is Annotated:
            args = get_args(param_type)
            for metadata in args[1:]:
                if isinstance(metadata, Qualifier):
                    return self.resolve_key_in(context, metadata.name, via=via)
            return self._resolve_param(context, args[0], via=via)

        # Handle Optional[T] (Union[T, None] or T | None)
        if get_origin(param_type) is Union or isinstance(param_type, types.UnionType):
            non_none = [a for a in get_args(param_type) if a is not type(None)]
            if len(non_none) == 1:
                if not self._candidates(non_none[0]):
                    return None
                return self._resolve_param(context, non_none[0], via=via)

        # Handle list[T]
        if get_origin(param_type) is list:
            args = get_args(param_type)
            if args:
                return self._resolve_all_in(context, args[0], via=via)

        if not isinstance(param_type, type):
            raise ResolutionError(required_by=context.requester, parameter=repr(param_type))
        return self.resolve_service_in(context, param_type, via=via)

    # ------------------------------------------------------------------
    # Release and disposal
    # ------------------------------------------------------------------

    def _track(self, handle: Any, model: ComponentModel, coordinator: LifecycleCoordinator) -> None:
        with self._tracking_lock:
            self._tracked[id(handle)] = _Tracked(handle, model, coordinator)

    def release(self, instance: Any) -> bool:
        """Release a resolved component.

        Runs ``@pre_destroy`` hooks of its target (if the target was ever
        built) exactly once.  Returns ``True`` for the call that performed
        the disposal; concurrent callers wait for it and get ``False``.
        A released singleton is activated afresh by the next ``resolve``.
        Transient instances without ``@pre_destroy`` hooks are never tracked,
        so releasing one returns ``False``.
        """
        with self._tracking_lock:
            entry = self._tracked.get(id(instance))
        if entry is None or entry.handle is not instance:
            if is_proxy(instance):
                return dispose_proxy(instance)
            return False

        performed = entry.coordinator.dispose()
        if performed:
            with self._tracking_lock:
                self._tracked.pop(id(instance), None)
            model = entry.model
            if model.scope is Scope.SINGLETON:
                with self._lock:
                    if self._singletons.get(model.key) is instance:
                        del self._singletons[model.key]
                        model.state = ComponentState.RELEASED
            logger.debug("component_released", component=model.key)
        return performed

    def dispose(self) -> None:
        """Dispose every tracked component (newest first), then terminate facilities."""
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
        with self._tracking_lock:
            entries = list(self._tracked.values())
            self._tracked.clear()

        errors: list[BaseException] = []
        for entry in reversed(entries):
            try:
                entry.coordinator.dispose()
            except Exception as exc:
                logger.error("component_dispose_failed", component=entry.model.key, error=exc)
                errors.append(exc)
            if entry.model.scope is Scope.SINGLETON:
                entry.model.state = ComponentState.RELEASED
        self._singletons.clear()

        for name, facility in reversed(list(self._facilities.items())):
            facility.terminate()
            logger.debug("facility_terminated", facility=name)

        logger.info("container_disposed", components=len(entries), facilities=len(self._facilities))
        if errors:
            raise errors[0]

    def __enter__(self) -> Container:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.dispose()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _services_for(implementation: type | None, service: type | Iterable[type] | None) -> tuple[type, ...]:
        if service is None:
            service = getattr(implementation, "__castellan_services__", None)
        if service is None:
            if implementation is None:
                raise ComponentRegistrationError("<unnamed>", "either an implementation or a service is required")
            return (implementation,)
        if isinstance(service, type):
            return (service,)
        services = tuple(service)
        if not services:
            raise ComponentRegistrationError(
                getattr(implementation, "__qualname__", "<unnamed>"), "at least one service is required"
            )
        return services

    def _similar_keys(self, key: str) -> list[str]:
        return difflib.get_close_matches(key, list(self._models), n=5, cutoff=0.4)

    def _similar_services(self, name: str) -> list[str]:
        """Return registered service names similar to *name* using fuzzy matching."""
        if not name:
            return []
        registered_names = [getattr(s, "__name__", repr(s)) for s in self._by_service]
        return difflib.get_close_matches(name, registered_names, n=5, cutoff=0.4)


def _default_key(cls: type) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"


def _satisfies(implementation: type, contract: type) -> bool:
    """Whether *implementation* can stand in for *contract*.

    Protocol services are checked structurally by the proxy at call time,
    so only nominal contracts are checked here.
    """
    if getattr(contract, "_is_protocol", False):
        return True
    try:
        return issubclass(implementation, contract)
    except TypeError:
        return True
