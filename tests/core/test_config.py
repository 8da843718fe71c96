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
"""Tests for Config — YAML/TOML loading, profiles, and environment overrides."""

from pathlib import Path

import pytest

from castellan.core.config import Config
from castellan.kernel.exceptions import ConfigurationException


class TestConfig:
    def test_get_simple_value(self):
        config = Config({"castellan": {"proxy": {"disposal-policy": "intercept"}}})
        assert config.get("castellan.proxy.disposal-policy") == "intercept"

    def test_get_with_default(self):
        config = Config({})
        assert config.get("missing.key", "default") == "default"

    def test_get_section(self):
        config = Config({"castellan": {"facilities": {"audit": {"pointcut": "app.**"}}}})
        assert config.get_section("castellan.facilities.audit") == {"pointcut": "app.**"}
        assert config.get_section("castellan.facilities.missing") == {}

    def test_has(self):
        config = Config({"castellan": {"logging": {"format": "json"}}})
        assert config.has("castellan.logging.format")
        assert not config.has("castellan.logging.level")

    def test_load_from_yaml_file(self, tmp_path: Path):
        config_file = tmp_path / "castellan.yaml"
        config_file.write_text("castellan:\n  proxy:\n    disposal-policy: raise\n")
        config = Config.from_file(config_file)
        assert config.get("castellan.proxy.disposal-policy") == "raise"
        assert config.loaded_sources == [str(config_file)]

    def test_load_from_toml_file(self, tmp_path: Path):
        config_file = tmp_path / "castellan.toml"
        config_file.write_text('[castellan.logging]\nformat = "json"\n')
        config = Config.from_file(config_file)
        assert config.get("castellan.logging.format") == "json"

    def test_missing_file_raises(self, tmp_path: Path):
        with pytest.raises(ConfigurationException) as exc_info:
            Config.from_file(tmp_path / "nope.yaml")
        assert exc_info.value.code == "CONFIG_NOT_FOUND"

    def test_env_var_override(self, monkeypatch):
        monkeypatch.setenv("CASTELLAN_PROXY_DISPOSAL_POLICY", "intercept")
        config = Config({"castellan": {"proxy": {"disposal-policy": "raise"}}})
        assert config.get("castellan.proxy.disposal-policy") == "intercept"

    def test_to_dict_returns_copy(self):
        config = Config({"a": 1})
        data = config.to_dict()
        data["a"] = 2
        assert config.get("a") == 1


class TestProfileConfigMerging:
    def test_merge_profile_config(self, tmp_path):
        base = tmp_path / "castellan.yaml"
        base.write_text("castellan:\n  logging:\n    format: console\n    level:\n      root: INFO\n")

        profile = tmp_path / "castellan-dev.yaml"
        profile.write_text("castellan:\n  logging:\n    level:\n      root: DEBUG\n")

        config = Config.from_file(base, active_profiles=["dev"])
        assert config.get("castellan.logging.level.root") == "DEBUG"
        assert config.get("castellan.logging.format") == "console"
        assert len(config.loaded_sources) == 2

    def test_later_profile_wins(self, tmp_path):
        base = tmp_path / "castellan.yaml"
        base.write_text("app:\n  name: base\n")
        (tmp_path / "castellan-dev.yaml").write_text("app:\n  name: dev\n")
        (tmp_path / "castellan-local.yaml").write_text("app:\n  name: local\n")

        config = Config.from_file(base, active_profiles=["dev", "local"])
        assert config.get("app.name") == "local"

    def test_missing_profile_file_is_skipped(self, tmp_path):
        base = tmp_path / "castellan.yaml"
        base.write_text("app:\n  name: test\n")

        config = Config.from_file(base, active_profiles=["nonexistent"])
        assert config.get("app.name") == "test"

    def test_env_vars_still_win(self, tmp_path, monkeypatch):
        base = tmp_path / "castellan.yaml"
        base.write_text("app:\n  name: base\n")
        (tmp_path / "castellan-dev.yaml").write_text("app:\n  name: dev\n")

        monkeypatch.setenv("CASTELLAN_APP_NAME", "env-wins")
        config = Config.from_file(base, active_profiles=["dev"])
        assert config.get("app.name") == "env-wins"


class TestSectionViews:
    def test_section_reads_relative_keys(self):
        config = Config({"castellan": {"facilities": {"audit": {"pointcut": "app.**"}}}})
        section = config.section("castellan.facilities.audit")
        assert section.prefix == "castellan.facilities.audit"
        assert section.get("pointcut") == "app.**"
        assert section.to_dict() == {"pointcut": "app.**"}

    def test_section_env_override_uses_full_path(self, monkeypatch):
        monkeypatch.setenv("CASTELLAN_FACILITIES_AUDIT_POINTCUT", "orders")
        config = Config({"castellan": {"facilities": {"audit": {"pointcut": "app.**"}}}})
        assert config.section("castellan.facilities.audit").get("pointcut") == "orders"

    def test_missing_section_is_empty(self):
        section = Config({}).section("castellan.facilities.none")
        assert section.to_dict() == {}
        assert not section.has("keys")

    def test_nested_section(self):
        config = Config({"castellan": {"logging": {"level": {"root": "DEBUG"}}}})
        assert config.section("castellan").section("logging").prefix == "castellan.logging"
        assert config.section("castellan").section("logging").get("level.root") == "DEBUG"


class TestTypedAccessors:
    def test_get_bool(self):
        config = Config({"flags": {"a": True, "b": "off", "c": "Yes"}})
        assert config.get_bool("flags.a") is True
        assert config.get_bool("flags.b") is False
        assert config.get_bool("flags.c") is True
        assert config.get_bool("flags.missing", default=True) is True

    def test_get_bool_rejects_garbage(self):
        with pytest.raises(ConfigurationException) as exc_info:
            Config({"flags": {"a": "maybe"}}).get_bool("flags.a")
        assert exc_info.value.code == "CONFIG_INVALID_VALUE"
        assert exc_info.value.context["key"] == "flags.a"

    def test_get_list_from_sequence_and_string(self):
        config = Config({"facility": {"keys": ["calc", "camera"], "csv": "calc, camera ,"}})
        assert config.get_list("facility.keys") == ["calc", "camera"]
        assert config.get_list("facility.csv") == ["calc", "camera"]
        assert config.get_list("facility.missing") == []

    def test_get_list_from_environment(self, monkeypatch):
        monkeypatch.setenv("CASTELLAN_FACILITIES_AUDIT_KEYS", "calc,camera")
        section = Config({}).section("castellan.facilities.audit")
        assert section.get_list("keys") == ["calc", "camera"]

    def test_get_list_rejects_mapping(self):
        with pytest.raises(ConfigurationException):
            Config({"facility": {"keys": {"a": 1}}}).get_list("facility.keys")


class TestInvalidFiles:
    def test_top_level_must_be_mapping(self, tmp_path: Path):
        config_file = tmp_path / "castellan.yaml"
        config_file.write_text("- just\n- a list\n")
        with pytest.raises(ConfigurationException) as exc_info:
            Config.from_file(config_file)
        assert exc_info.value.code == "CONFIG_INVALID"

    def test_empty_yaml_is_empty_config(self, tmp_path: Path):
        config_file = tmp_path / "castellan.yaml"
        config_file.write_text("")
        assert Config.from_file(config_file).to_dict() == {}
