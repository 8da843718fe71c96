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
"""Castellan configuration: YAML/TOML files, profiles, and environment overrides."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

from castellan.kernel.exceptions import ConfigurationException

_ENV_PREFIX = "CASTELLAN_"
_MISSING = object()

_TRUE = frozenset({"true", "yes", "on", "1"})
_FALSE = frozenset({"false", "no", "off", "0"})


class Config:
    """Castellan settings, read by dotted key.

    A value is looked up in this order:

    1. the environment, e.g. ``CASTELLAN_PROXY_DISPOSAL_POLICY`` for
       ``castellan.proxy.disposal-policy``
    2. the loaded data
    3. the default passed to :meth:`get`

    :meth:`section` returns a view rooted at a prefix.  Keys read through a
    view keep their full path for environment overrides, so a facility
    reading ``keys`` from the ``castellan.facilities.audit`` section honours
    ``CASTELLAN_FACILITIES_AUDIT_KEYS``.
    """

    def __init__(self, data: dict[str, Any] | None = None, *, prefix: str = "") -> None:
        self._data: dict[str, Any] = data if data is not None else {}
        self._prefix = prefix
        self._sources: list[str] = []

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def loaded_sources(self) -> list[str]:
        """Files merged into this config, in merge order."""
        return list(self._sources)

    def to_dict(self) -> dict[str, Any]:
        return dict(self._data)

    @classmethod
    def from_file(cls, path: str | Path, active_profiles: list[str] | None = None) -> Config:
        """Load a YAML or TOML file, then overlay ``{stem}-{profile}{suffix}`` files in profile order."""
        path = Path(path)
        if not path.is_file():
            raise ConfigurationException(
                f"Configuration file not found: {path}",
                code="CONFIG_NOT_FOUND",
                context={"path": str(path)},
            )

        data = _read(path)
        sources = [str(path)]
        for profile in active_profiles or ():
            overlay = path.with_name(f"{path.stem}-{profile}{path.suffix}")
            if overlay.is_file():
                data = _merge(data, _read(overlay))
                sources.append(f"{overlay} (profile: {profile})")

        config = cls(data)
        config._sources = sources
        return config

    def get(self, key: str, default: Any = None) -> Any:
        env_value = os.environ.get(_env_name(self._qualify(key)))
        if env_value is not None:
            return env_value
        value = self._lookup(key)
        if value is _MISSING or value is None:
            return default
        return value

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise self._invalid(key, value, "a boolean")

    def get_list(self, key: str) -> list[str]:
        """A list value; a string is split on commas."""
        value = self.get(key)
        if value is None:
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        if isinstance(value, (list, tuple, set)):
            return [str(item) for item in value]
        raise self._invalid(key, value, "a list")

    def get_section(self, prefix: str) -> dict[str, Any]:
        """The raw mapping under *prefix*, or an empty dict."""
        value = self._lookup(prefix)
        return value if isinstance(value, dict) else {}

    def section(self, prefix: str) -> Config:
        """A :class:`Config` view of the mapping under *prefix*."""
        return Config(self.get_section(prefix), prefix=self._qualify(prefix))

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def _qualify(self, key: str) -> str:
        return f"{self._prefix}.{key}" if self._prefix else key

    def _lookup(self, key: str) -> Any:
        current: Any = self._data
        for part in key.split("."):
            if not isinstance(current, dict) or part not in current:
                return _MISSING
            current = current[part]
        return current

    def _invalid(self, key: str, value: Any, expected: str) -> ConfigurationException:
        full_key = self._qualify(key)
        return ConfigurationException(
            f"Configuration value '{full_key}' must be {expected}, got {value!r}",
            code="CONFIG_INVALID_VALUE",
            context={"key": full_key, "value": value},
        )


def _env_name(key: str) -> str:
    # castellan.proxy.disposal-policy -> CASTELLAN_PROXY_DISPOSAL_POLICY
    return _ENV_PREFIX + key.removeprefix("castellan.").upper().replace(".", "_").replace("-", "_")


def _read(path: Path) -> dict[str, Any]:
    if path.suffix == ".toml":
        with path.open("rb") as f:
            data = tomllib.load(f)
    else:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationException(
            f"Configuration file {path} must contain a mapping at the top level",
            code="CONFIG_INVALID",
            context={"path": str(path)},
        )
    return data


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(merged.get(key), dict) and isinstance(value, dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged
