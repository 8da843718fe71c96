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
"""Method interception: invocation contexts, chains, and forwarding proxies."""

from castellan.interception.chain import EMPTY_CHAIN, Chain, ChainBuilder
from castellan.interception.exceptions import (
    DisposedError,
    InterceptionException,
    InterceptorContractError,
    NoTargetError,
)
from castellan.interception.interceptors import (
    LoggingInterceptor,
    ReturnDefaultInterceptor,
    SynchronizedInterceptor,
)
from castellan.interception.invocation import InvocationContext, StaticTarget, dispatch
from castellan.interception.pointcut import matches_pointcut
from castellan.interception.proxy import (
    ComponentProxy,
    ProxyFactory,
    dispose,
    get_chain,
    get_component_model,
    get_target,
    is_proxy,
)
from castellan.interception.resolver import InterceptorReferenceResolver
from castellan.interception.types import Interceptor, OnBehalfAware, Operation, operations_of

__all__ = [
    "EMPTY_CHAIN",
    "Chain",
    "ChainBuilder",
    "ComponentProxy",
    "DisposedError",
    "InterceptionException",
    "Interceptor",
    "InterceptorContractError",
    "InterceptorReferenceResolver",
    "InvocationContext",
    "LoggingInterceptor",
    "NoTargetError",
    "OnBehalfAware",
    "Operation",
    "ProxyFactory",
    "ReturnDefaultInterceptor",
    "StaticTarget",
    "SynchronizedInterceptor",
    "dispatch",
    "dispose",
    "get_chain",
    "get_component_model",
    "get_target",
    "is_proxy",
    "matches_pointcut",
    "operations_of",
]
