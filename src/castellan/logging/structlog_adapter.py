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
"""StructlogAdapter — configures structlog and stdlib logging from Castellan config.

Recognised keys under ``castellan.logging``::

    level:
      root: INFO
      castellan.interception: DEBUG
    format: console      # or json
    stream: stdout       # or stderr
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from castellan.core.config import Config
from castellan.kernel.exceptions import CastellanException, ConfigurationException

_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET")
_FORMATS = ("console", "json")
_STREAMS = ("stdout", "stderr")


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger by name."""
    return structlog.get_logger(name)


def add_error_context(
    logger: Any, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """Render an ``error=`` exception; framework errors also contribute ``error_*`` fields."""
    error = event_dict.get("error")
    if isinstance(error, CastellanException):
        details = error.to_dict()
        event_dict["error"] = f"{details['type']}: {details['message']}"
        if details["code"]:
            event_dict.setdefault("error_code", details["code"])
        for key, value in details["context"].items():
            event_dict.setdefault(f"error_{key}", value)
    elif isinstance(error, BaseException):
        event_dict["error"] = f"{type(error).__name__}: {error}"
    return event_dict


def build_processors(fmt: str) -> list[structlog.types.Processor]:
    """Processor pipeline shared by both output formats; only the renderer differs."""
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if fmt == "json" else structlog.dev.ConsoleRenderer()
    )
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        add_error_context,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        renderer,
    ]


class StructlogAdapter:
    """Applies the ``castellan.logging`` section to structlog and the stdlib root logger."""

    def __init__(self) -> None:
        self._root_level = "INFO"
        self._module_levels: dict[str, str] = {}
        self._format = "console"
        self._stream = "stdout"

    def configure(self, config: Config) -> None:
        section = config.section("castellan.logging")
        levels = dict(section.get_section("level"))
        root = levels.pop("root", "INFO")

        self._root_level = _level_name(root)
        self._module_levels = {name: _level_name(level) for name, level in levels.items()}
        self._format = _choice(section, "format", _FORMATS)
        self._stream = _choice(section, "stream", _STREAMS)

        structlog.configure(
            processors=build_processors(self._format),
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        logging.basicConfig(
            format="%(message)s",
            stream=getattr(sys, self._stream),
            level=self._root_level,
            force=True,
        )
        for name, level in self._module_levels.items():
            self.set_level(name, level)

    def get_logger(self, name: str) -> Any:
        return structlog.get_logger(name)

    def set_level(self, name: str, level: str) -> None:
        """Set the level of one stdlib logger, e.g. ``castellan.container``."""
        logging.getLogger(name).setLevel(_level_name(level))


def _level_name(value: Any) -> str:
    name = str(value).strip().upper()
    if name not in _LEVELS:
        raise ConfigurationException(
            f"Unknown log level {value!r}; expected one of {', '.join(_LEVELS)}",
            code="CONFIG_LOGGING_LEVEL",
            context={"level": value},
        )
    return name


def _choice(section: Config, key: str, allowed: tuple[str, ...]) -> str:
    value = str(section.get(key, allowed[0])).strip().lower()
    if value not in allowed:
        raise ConfigurationException(
            f"'{section.prefix}.{key}' must be one of {', '.join(allowed)}, got {value!r}",
            code="CONFIG_LOGGING_" + key.upper(),
            context={"key": f"{section.prefix}.{key}", "value": value},
        )
    return value
