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
"""Castellan container — components, interceptor wiring, and lifecycle."""

from castellan.container.activation import CreationContext
from castellan.container.container import Container
from castellan.container.exceptions import (
    ComponentCreationException,
    ComponentRegistrationError,
    CyclicDependencyError,
    ResolutionError,
)
from castellan.container.facilities import KeyInterceptorFacility, PointcutInterceptorFacility
from castellan.container.facility import Facility
from castellan.container.lifecycle import (
    DisposalPolicy,
    LifecycleCoordinator,
    LifecycleState,
    post_construct,
    pre_destroy,
)
from castellan.container.model import ComponentModel, InterceptorReference
from castellan.container.stereotypes import (
    Qualifier,
    component,
    intercepted_by,
    interceptor,
    primary,
    service,
)
from castellan.container.types import ComponentState, Scope

__all__ = [
    "ComponentCreationException",
    "ComponentModel",
    "ComponentRegistrationError",
    "ComponentState",
    "Container",
    "CreationContext",
    "CyclicDependencyError",
    "DisposalPolicy",
    "Facility",
    "InterceptorReference",
    "KeyInterceptorFacility",
    "LifecycleCoordinator",
    "LifecycleState",
    "PointcutInterceptorFacility",
    "Qualifier",
    "ResolutionError",
    "Scope",
    "component",
    "intercepted_by",
    "interceptor",
    "post_construct",
    "pre_destroy",
    "primary",
    "service",
]
