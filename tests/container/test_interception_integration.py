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
"""End-to-end tests for intercepted components resolved from the container."""

import threading
from abc import ABC, abstractmethod
from typing import Any

import pytest
import structlog
from structlog.testing import capture_logs

import castellan.container.container as container_module
from castellan.container import (
    ComponentState,
    Container,
    KeyInterceptorFacility,
    Scope,
    intercepted_by,
    interceptor,
    post_construct,
    pre_destroy,
)
from castellan.container.exceptions import ComponentCreationException, ResolutionError
from castellan.core.config import Config
from castellan.interception import (
    EMPTY_CHAIN,
    DisposedError,
    InterceptorContractError,
    InvocationContext,
    NoTargetError,
    ReturnDefaultInterceptor,
    get_chain,
    get_component_model,
    get_target,
    is_proxy,
)


class ICalcService(ABC):
    @abstractmethod
    def sum(self, a: int, b: int) -> int: ...


class CalculatorService(ICalcService):
    built = 0

    def __init__(self) -> None:
        CalculatorService.built += 1
        self.initialized = False
        self.disposed = False

    @post_construct
    def on_start(self) -> None:
        self.initialized = True

    @pre_destroy
    def on_stop(self) -> None:
        self.disposed = True

    def sum(self, a: int, b: int) -> int:
        return a + b

    def fail(self) -> int:
        raise ArithmeticError("no can do")


class ResultModifierInterceptor:
    def intercept(self, context: InvocationContext) -> None:
        context.proceed()
        context.return_value += 1


class PassthroughInterceptor:
    def __init__(self) -> None:
        self.seen: list[tuple[str, list[Any]]] = []

    def intercept(self, context: InvocationContext) -> None:
        self.seen.append((context.method_name, list(context.arguments)))
        context.proceed()


class TraceInterceptor:
    """Records which component each interceptor instance was resolved for."""

    def __init__(self) -> None:
        self.component_key: str | None = None

    def set_intercepted_component(self, model: Any) -> None:
        self.component_key = model.key

    def intercept(self, context: InvocationContext) -> None:
        context.proceed()


class Offset:
    def amount(self) -> int:
        return 10


class OffsetInterceptor:
    def __init__(self, offset: Offset) -> None:
        self.offset = offset

    def intercept(self, context: InvocationContext) -> None:
        context.proceed()
        context.return_value += self.offset.amount()


@intercepted_by("interceptor")
class DeclaredCalculator(ICalcService):
    def sum(self, a: int, b: int) -> int:
        return a + b


@interceptor(name="stereotyped")
class StereotypedInterceptor:
    def intercept(self, context: InvocationContext) -> None:
        context.proceed()
        context.return_value *= 10


class NotAnInterceptor:
    pass


@pytest.fixture(autouse=True)
def reset_counters():
    CalculatorService.built = 0


class PlainCounter:
    def __init__(self) -> None:
        self.count = 0



@pytest.fixture
def container():
    c = Container()
    c.register(ResultModifierInterceptor, name="interceptor")
    yield c
    c.dispose()


class TestInterceptedResolution:
    def test_interceptor_modifies_result(self, container):
        container.register(CalculatorService, service=ICalcService, interceptors=["interceptor"])
        calc = container.resolve(ICalcService)
        assert calc.sum(2, 2) == 5

    def test_resolved_handle_is_a_proxy_of_the_service(self, container):
        container.register(CalculatorService, service=ICalcService, name="calc", interceptors=["interceptor"])
        calc = container.resolve(ICalcService)
        assert is_proxy(calc)
        assert isinstance(calc, ICalcService)
        assert get_component_model(calc).key == "calc"
        assert len(get_chain(calc)) == 1

    def test_duplicate_reference_runs_twice(self, container):
        container.register(CalculatorService, service=ICalcService, interceptors=["interceptor", "interceptor"])
        assert container.resolve(ICalcService).sum(2, 2) == 6

    def test_passthrough_is_transparent(self, container):
        container.register(PassthroughInterceptor, name="passthrough")
        container.register(CalculatorService, service=ICalcService, name="calc", interceptors=["passthrough"])
        calc = container.resolve(ICalcService)
        assert calc.sum(3, b=4) == CalculatorService().sum(3, 4)
        recorder = container.resolve("passthrough")
        assert recorder.seen == [("sum", [3])]

    def test_interceptor_resolved_by_type(self, container):
        container.register(PassthroughInterceptor)
        container.register(CalculatorService, service=ICalcService, interceptors=[PassthroughInterceptor])
        calc = container.resolve(ICalcService)
        calc.sum(1, 1)
        assert container.resolve(PassthroughInterceptor).seen == [("sum", [1, 1])]

    def test_class_proxy(self, container):
        container.register(CalculatorService, interceptors=["interceptor"])
        calc = container.resolve(CalculatorService)
        assert is_proxy(calc)
        assert isinstance(calc, CalculatorService)
        assert calc.sum(2, 2) == 5

    def test_target_exception_propagates(self, container):
        container.register(CalculatorService, interceptors=["interceptor"])
        with pytest.raises(ArithmeticError, match="no can do"):
            container.resolve(CalculatorService).fail()

    def test_interceptor_gets_constructor_dependencies(self, container):
        container.register(Offset)
        container.register(OffsetInterceptor, name="offset")
        container.register(CalculatorService, service=ICalcService, interceptors=["offset"])
        assert container.resolve(ICalcService).sum(1, 1) == 12

    def test_intercepted_interceptor_is_wrapped(self, container):
        container.register(PassthroughInterceptor, name="passthrough")
        container.register(StereotypedInterceptor, interceptors=["passthrough"])
        container.register(CalculatorService, service=ICalcService, interceptors=["stereotyped"])
        stereotyped = container.resolve("stereotyped")
        assert is_proxy(stereotyped)
        assert container.resolve(ICalcService).sum(2, 2) == 40

    def test_class_level_declaration(self, container):
        container.register(DeclaredCalculator, service=ICalcService)
        assert container.resolve(ICalcService).sum(2, 2) == 5

    def test_registration_argument_appends_after_declared(self, container):
        container.register(StereotypedInterceptor)
        model = container.register(DeclaredCalculator, service=ICalcService, interceptors=["stereotyped"])
        assert [r.key for r in model.interceptors] == ["interceptor", "stereotyped"]
        # (2 + 2) * 10 + 1
        assert container.resolve(ICalcService).sum(2, 2) == 41

    def test_on_behalf_aware_interceptor(self, container):
        container.register(TraceInterceptor, name="trace", scope=Scope.TRANSIENT)
        container.register(CalculatorService, service=ICalcService, name="first", interceptors=["trace"])
        container.register(DeclaredCalculator, service=ICalcService, name="second", interceptors=["trace"])
        first, second = container.resolve_all(ICalcService)
        assert get_chain(first)[0].component_key == "first"
        assert get_chain(second)[-1].component_key == "second"


class TestPlainComponents:
    def test_component_without_interceptors_is_not_proxied(self, container):
        container.register(CalculatorService, service=ICalcService, name="calc")
        calc = container.resolve(ICalcService)
        assert type(calc) is CalculatorService
        assert calc.initialized
        assert container.chain_for("calc") is EMPTY_CHAIN

    def test_plain_singleton_is_cached(self, container):
        container.register(CalculatorService)
        assert container.resolve(CalculatorService) is container.resolve(CalculatorService)
        assert CalculatorService.built == 1


class TestOmittedTarget:
    def test_return_default_interceptor_yields_zero(self, container):
        container.register(ReturnDefaultInterceptor, name="default")
        container.register(service=ICalcService, name="no-target", interceptors=["default"])
        calc = container.resolve(ICalcService)
        assert calc.sum(2, 2) == 0
        assert get_target(calc) is None

    def test_proceeding_without_target_raises(self, container):
        container.register(service=ICalcService, name="no-target", interceptors=["interceptor"])
        with pytest.raises(NoTargetError) as exc_info:
            container.resolve(ICalcService).sum(2, 2)
        assert exc_info.value.component == "no-target"

    def test_no_implementation_and_no_interceptors_fails(self, container):
        container.register(service=ICalcService, name="hollow")
        with pytest.raises(ComponentCreationException) as exc_info:
            container.resolve("hollow")
        assert exc_info.value.subsystem == "activation"


class TestInterceptorResolutionErrors:
    def test_missing_interceptor_key(self, container):
        container.register(CalculatorService, service=ICalcService, name="calc", interceptors=["interceptr"])
        with pytest.raises(ResolutionError) as exc_info:
            container.resolve(ICalcService)
        assert exc_info.value.key == "interceptr"
        assert "interceptor" in exc_info.value.suggestions

    def test_failed_activation_leaves_model_registered(self, container):
        model = container.register(CalculatorService, service=ICalcService, interceptors=["later"])
        with pytest.raises(ResolutionError):
            container.resolve(ICalcService)
        assert model.state is ComponentState.REGISTERED
        container.register(PassthroughInterceptor, name="later")
        assert container.resolve(ICalcService).sum(1, 1) == 2

    def test_non_interceptor_reference(self, container):
        container.register(NotAnInterceptor, name="nope")
        container.register(CalculatorService, service=ICalcService, interceptors=["nope"])
        with pytest.raises(InterceptorContractError):
            container.resolve(ICalcService)


class TestFacilitiesAndFreezing:
    def test_single_greedy_facility(self, container):
        container.add_facility("greedy", KeyInterceptorFacility("interceptor", keys=["key"]))
        container.register(CalculatorService, service=ICalcService, name="key")
        assert container.resolve(ICalcService).sum(2, 2) == 5

    def test_three_greedy_facilities_stack(self, container):
        for name in ("greedy-1", "greedy-2", "greedy-3"):
            container.add_facility(name, KeyInterceptorFacility("interceptor", keys=["key"]))
        container.register(CalculatorService, service=ICalcService, name="key")
        assert container.resolve_by_name("key").sum(2, 2) == 7

    def test_mutation_after_activation_is_ignored(self, container):
        model = container.register(CalculatorService, service=ICalcService, interceptors=["interceptor"])
        calc = container.resolve(ICalcService)
        assert model.add_interceptor("interceptor") is False
        assert calc.sum(2, 2) == 5
        assert len(container.chain_for(model.key)) == 1

    def test_facility_added_late_does_not_touch_existing_components(self, container):
        container.register(CalculatorService, service=ICalcService, name="key")
        container.add_facility("greedy", KeyInterceptorFacility("interceptor", keys=["key"]))
        assert container.resolve(ICalcService).sum(2, 2) == 4


class TestScopes:
    def test_singleton_proxy_is_cached(self, container):
        container.register(CalculatorService, service=ICalcService, interceptors=["interceptor"])
        assert container.resolve(ICalcService) is container.resolve(ICalcService)

    def test_transient_proxies_share_the_chain(self, container):
        container.register(
            CalculatorService, service=ICalcService, scope=Scope.TRANSIENT, interceptors=["interceptor"]
        )
        a = container.resolve(ICalcService)
        b = container.resolve(ICalcService)
        assert a is not b
        assert get_chain(a) is get_chain(b)
        a.sum(1, 1)
        b.sum(1, 1)
        assert CalculatorService.built == 2

    def test_hookless_transients_are_not_tracked(self):
        container = Container()
        container.register(PlainCounter, scope=Scope.TRANSIENT)
        instances = [container.resolve(PlainCounter) for _ in range(100)]
        assert len({id(i) for i in instances}) == 100
        assert container._tracked == {}
        assert container.release(instances[0]) is False

    def test_transients_with_pre_destroy_are_tracked_and_disposed(self):
        container = Container()
        container.register(CalculatorService, scope=Scope.TRANSIENT)
        a = container.resolve(CalculatorService)
        b = container.resolve(CalculatorService)
        assert len(container._tracked) == 2
        container.dispose()
        assert a.disposed and b.disposed

    def test_activation_logs_scope_name(self, monkeypatch):
        container = Container()
        container.register(PlainCounter, scope=Scope.TRANSIENT)
        with capture_logs() as logs:
            monkeypatch.setattr(container_module, "logger", structlog.get_logger("castellan.container"))
            container.resolve(PlainCounter)
        activated = [entry for entry in logs if entry["event"] == "component_activated"]
        assert activated[0]["scope"] == "TRANSIENT"


class TestLifecycle:
    def test_target_is_built_lazily(self, container):
        container.register(CalculatorService, service=ICalcService, interceptors=["interceptor"])
        calc = container.resolve(ICalcService)
        assert CalculatorService.built == 0
        assert calc.initialized is True
        assert CalculatorService.built == 1

    def test_release_disposes_target(self, container):
        container.register(CalculatorService, service=ICalcService, interceptors=["interceptor"])
        calc = container.resolve(ICalcService)
        calc.sum(1, 1)
        target = get_target(calc)
        assert target.initialized

        assert container.release(calc) is True
        assert target.disposed
        assert container.release(calc) is False
        with pytest.raises(DisposedError):
            calc.sum(1, 1)

    def test_released_singleton_reactivates_with_same_chain(self, container):
        model = container.register(CalculatorService, service=ICalcService, interceptors=["interceptor"])
        first = container.resolve(ICalcService)
        chain = get_chain(first)
        container.release(first)
        assert model.state is ComponentState.RELEASED

        second = container.resolve(ICalcService)
        assert second is not first
        assert get_chain(second) is chain
        assert second.sum(2, 2) == 5

    def test_release_plain_instance(self, container):
        container.register(CalculatorService)
        calc = container.resolve(CalculatorService)
        assert container.release(calc) is True
        assert calc.disposed

    def test_release_unknown_object(self, container):
        assert container.release(object()) is False

    def test_dispose_policy_from_config(self):
        container = Container(Config({"castellan": {"proxy": {"disposal-policy": "intercept"}}}))
        container.register(ReturnDefaultInterceptor, name="default")
        container.register(CalculatorService, service=ICalcService, interceptors=["default"])
        calc = container.resolve(ICalcService)
        container.release(calc)
        assert calc.sum(2, 2) == 0

    def test_dispose_policy_per_registration(self, container):
        container.register(ReturnDefaultInterceptor, name="default")
        container.register(
            CalculatorService, service=ICalcService, interceptors=["default"], disposal_policy="intercept"
        )
        calc = container.resolve(ICalcService)
        container.release(calc)
        assert calc.sum(2, 2) == 0

    def test_container_dispose_releases_everything(self):
        with Container() as container:
            container.register(ResultModifierInterceptor, name="interceptor")
            container.register(CalculatorService, service=ICalcService, interceptors=["interceptor"])
            calc = container.resolve(ICalcService)
            calc.sum(1, 1)
            target = get_target(calc)
        assert target.disposed
        assert container.is_disposed
        with pytest.raises(DisposedError):
            calc.sum(1, 1)
        with pytest.raises(ComponentCreationException):
            container.resolve(ICalcService)


class TestConcurrency:
    def test_concurrent_calls(self, container):
        container.register(CalculatorService, service=ICalcService, interceptors=["interceptor"])
        calc = container.resolve(ICalcService)
        errors: list[BaseException] = []
        results: list[int] = []
        lock = threading.Lock()

        def worker(n: int) -> None:
            try:
                for i in range(200):
                    value = calc.sum(n, i)
                    with lock:
                        results.append(value - n - i)
            except BaseException as exc:
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert errors == []
        assert len(results) == 2000
        assert set(results) == {1}
        assert CalculatorService.built == 1

    def test_concurrent_first_resolution_activates_once(self, container):
        container.register(CalculatorService, service=ICalcService, interceptors=["interceptor"])
        barrier = threading.Barrier(8)
        handles: list[Any] = []

        def worker() -> None:
            barrier.wait()
            handles.append(container.resolve(ICalcService))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(handles) == 8
        assert all(h is handles[0] for h in handles)

    def test_concurrent_release(self, container):
        container.register(CalculatorService, service=ICalcService, interceptors=["interceptor"])
        calc = container.resolve(ICalcService)
        calc.sum(1, 1)
        target = get_target(calc)
        barrier = threading.Barrier(8)
        outcomes: list[bool] = []

        def worker() -> None:
            barrier.wait()
            outcomes.append(container.release(calc))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert outcomes.count(True) == 1
        assert target.disposed
        with pytest.raises(DisposedError):
            calc.sum(1, 1)
