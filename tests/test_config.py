"""
Configuration tests.

Run with: pytest tests/test_config.py -v
"""

from pathlib import Path

import pytest
import yaml

from arbiter.config import (
    ArbiterConfig,
    ConfigError,
    ConfigValidationError,
    ConfigValue,
    get_config,
    get_config_manager,
)


class TestConfigValue:

    def test_default_then_override(self):
        value = ConfigValue(default=10)
        assert value.get() == 10
        value.set("25")
        assert value.get() == 25
        value.reset()
        assert value.get() == 10

    def test_env_wins(self, monkeypatch):
        value = ConfigValue(default=False, env_var="ARBITER_TEST_FLAG")
        value.set(False)
        monkeypatch.setenv("ARBITER_TEST_FLAG", "yes")
        assert value.get() is True

    def test_validator(self):
        value = ConfigValue(default="json", validator=lambda x: x in ("json", "text"))
        with pytest.raises(ConfigValidationError):
            value.set("xml")

    def test_bad_coercion(self):
        with pytest.raises(ConfigValidationError):
            ConfigValue(default=1).set("many")

    def test_change_callback(self):
        seen = []
        value = ConfigValue(default=1)
        value.on_change(lambda old, new: seen.append((old, new)))
        value.set(2)
        value.set(3)
        assert seen == [(None, 2), (2, 3)]


class TestDefaults:

    def test_defaults(self):
        config = get_config()
        assert config.verifier.emit_events.get() is True
        assert config.trace.max_input_bytes.get() == 4096
        assert config.cli.output_format.get() == "json"
        assert config.observability.log_level.get() == "info"
        assert config.observability.log_format.get() == "json"

    def test_to_yaml_roundtrip(self):
        data = yaml.safe_load(ArbiterConfig().to_yaml())
        assert data["trace"]["max_input_bytes"] == 4096
        assert set(data) == {"verifier", "trace", "cli", "observability"}


class TestConfigManager:

    def test_singleton(self):
        assert get_config_manager() is get_config_manager()

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "arbiter.yaml"
        path.write_text(
            "verifier:\n  emit_events: false\n"
            "trace:\n  max_input_bytes: 128\n"
            "observability:\n  log_level: debug\n"
        )

        get_config_manager().load_from_file(path)

        assert get_config().verifier.emit_events.get() is False
        assert get_config_manager().get("trace.max_input_bytes") == 128
        assert get_config_manager().get("observability") == {"log_level": "debug", "log_format": "json"}

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "arbiter.yaml"
        path.write_text("cli:\n  output_format: yaml\n")
        get_config_manager().load_from_file(path)

        monkeypatch.setenv("ARBITER_OUTPUT_FORMAT", "text")
        assert get_config_manager().get("cli.output_format") == "text"

    def test_load_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        (tmp_path / "config").mkdir()
        (tmp_path / "config" / "arbiter.yaml").write_text("cli:\n  output_format: text\n")

        loaded = get_config_manager().load_defaults()

        assert loaded == [Path("config/arbiter.yaml")]
        assert get_config().cli.output_format.get() == "text"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            get_config_manager().load_from_file(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("trace: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            get_config_manager().load_from_file(path)

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigError, match="mapping"):
            get_config_manager().load_from_file(path)

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "typo.yaml"
        path.write_text("trace:\n  max_input: 10\n")
        with pytest.raises(ConfigError, match="trace.max_input"):
            get_config_manager().load_from_file(path)

    def test_invalid_value(self, tmp_path):
        path = tmp_path / "zero.yaml"
        path.write_text("trace:\n  max_input_bytes: 0\n")
        with pytest.raises(ConfigValidationError):
            get_config_manager().load_from_file(path)

    def test_set_and_get_paths(self):
        mgr = get_config_manager()
        mgr.set("observability.log_format", "text")
        assert mgr.get("observability.log_format") == "text"
        with pytest.raises(ConfigError):
            mgr.get("observability.nope")
        with pytest.raises(ConfigError):
            mgr.set("observability", "text")

    def test_reload_notifies_watchers(self, tmp_path):
        path = tmp_path / "arbiter.yaml"
        path.write_text("trace:\n  max_input_bytes: 64\n")
        mgr = get_config_manager()
        mgr.load_from_file(path)

        seen = []
        mgr.watch(lambda cfg: seen.append(cfg.trace.max_input_bytes.get()))
        path.write_text("trace:\n  max_input_bytes: 32\n")
        mgr.reload()

        assert seen == [32]

    def test_validate(self, monkeypatch):
        mgr = get_config_manager()
        assert mgr.validate() == []
        monkeypatch.setenv("ARBITER_LOG_FORMAT", "xml")
        errors = mgr.validate()
        assert len(errors) == 1
        assert errors[0].startswith("observability.log_format")

    def test_export_schema(self):
        schema = get_config_manager().export_schema()
        entry = schema["properties"]["trace"]["max_input_bytes"]
        assert entry["type"] == "int"
        assert entry["default"] == "4096"
        assert entry["env_var"] == "ARBITER_TRACE_MAX_INPUT"
