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
"""Built-in interceptors."""

from __future__ import annotations

import threading
import time

import structlog

from castellan.interception.invocation import InvocationContext


class ReturnDefaultInterceptor:
    """Short-circuits every call with the operation's zero value.

    Never proceeds, so the target is never built or invoked.  Useful as the
    only interceptor of a component registered without an implementation.
    """

    def intercept(self, context: InvocationContext) -> None:
        context.return_value = context.operation.zero_value()


class LoggingInterceptor:
    """Logs each invocation's start, result, and failure as structured events."""

    def __init__(self, logger_name: str = "castellan.invocation", log_results: bool = False) -> None:
        self._logger = structlog.get_logger(logger_name)
        self._log_results = log_results

    def intercept(self, context: InvocationContext) -> None:
        component = getattr(context.component, "key", None)
        operation = context.operation.qualified_name
        self._logger.debug("invocation_started", component=component, operation=operation)
        started = time.perf_counter()
        try:
            context.proceed()
        except Exception as exc:
            self._logger.warning(
                "invocation_failed",
                component=component,
                operation=operation,
                elapsed_ms=round((time.perf_counter() - started) * 1000, 3),
                error=exc,
            )
            raise
        extra = {"result": context.return_value} if self._log_results else {}
        self._logger.debug(
            "invocation_completed",
            component=component,
            operation=operation,
            elapsed_ms=round((time.perf_counter() - started) * 1000, 3),
            **extra,
        )


class SynchronizedInterceptor:
    """Serializes calls: at most one thread is past this interceptor at a time.

    The lock is re-entrant, so a target calling back into its own proxy on
    the same thread does not deadlock.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()

    def intercept(self, context: InvocationContext) -> None:
        with self._lock:
            context.proceed()
