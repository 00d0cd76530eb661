"""
Unit tests for configuration.

Tests defaults, validation, environment variable handling, config files
and override precedence.
"""

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from flakeproof.core.config import Config, SinkConfig, env_overrides, load_config, read_config_file
from flakeproof.core.exceptions import ConfigFault
from flakeproof.core.types import CaptureMode, SinkType, TestMode

ENV_VARS = [
    "CI",
    "FLAKEPROOF_BASE_URL",
    "FLAKEPROOF_LOG_LEVEL",
    "FLAKEPROOF_HEADLESS",
    "FLAKEPROOF_WORKERS",
    "FLAKEPROOF_MAX_ATTEMPTS_RUN",
    "FLAKEPROOF_MAX_ATTEMPTS_INTERACTIVE",
    "FLAKEPROOF_ARTIFACTS_DIR",
]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Run every test without flakeproof variables from the host."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestConfig:
    """Test cases for Config."""

    def test_default_config_creation(self):
        """Test creating config with default values."""
        config = Config()

        assert config.ci_mode is False
        assert config.headless is None
        assert config.log_level == "INFO"
        assert config.log_format == "text"
        assert config.default_timeout_ms == 30000
        assert config.max_attempts(TestMode.RUN) == 3
        assert config.max_attempts(TestMode.INTERACTIVE) == 1
        assert config.workers == 1
        assert config.capture_mode == CaptureMode.ON_FAILURE
        assert [s.type for s in config.sinks] == [SinkType.CONSOLE]

    def test_config_is_immutable(self):
        config = Config()

        with pytest.raises(Exception):
            config.workers = 4

    def test_ci_mode_forces_json_logs_and_headless(self):
        config = Config(ci_mode=True)

        assert config.log_format == "json"
        assert config.is_headless is True

    def test_explicit_headless_wins(self):
        assert Config(ci_mode=True, headless=False).is_headless is False
        assert Config(headless=True).is_headless is True

    def test_log_level_normalized(self):
        assert Config(log_level="warn").log_level == "WARNING"
        assert Config(log_level="debug").debug_enabled

    def test_invalid_log_level(self):
        with pytest.raises(Exception):
            Config(log_level="VERBOSE")

    def test_base_url_trailing_slash_stripped(self):
        assert Config(base_url="https://example.com/").base_url == "https://example.com"

    def test_base_url_requires_scheme(self):
        with pytest.raises(Exception):
            Config(base_url="example.com")

    def test_max_attempts_merged_with_defaults(self):
        config = Config(max_attempts_by_mode={"run": 5})

        assert config.max_attempts(TestMode.RUN) == 5
        assert config.max_attempts(TestMode.INTERACTIVE) == 1

    def test_max_attempts_must_be_positive(self):
        with pytest.raises(Exception):
            Config(max_attempts_by_mode={"interactive": 0})

    def test_workers_bounds(self):
        with pytest.raises(Exception):
            Config(workers=0)
        with pytest.raises(Exception):
            Config(workers=17)

    def test_file_sinks_need_output_path(self):
        with pytest.raises(Exception):
            SinkConfig(type=SinkType.JUNIT)
        assert SinkConfig(type=SinkType.JSON, output_path=Path("out.jsonl")).output_path == Path("out.jsonl")

    def test_log_file_path(self, tmp_path):
        config = Config(logs_dir=tmp_path)

        assert config.get_log_file_path() == tmp_path / "flakeproof.log"

    def test_with_overrides_returns_validated_copy(self):
        config = Config()

        updated = config.with_overrides(workers=4, base_url=None)

        assert updated.workers == 4
        assert config.workers == 1
        with pytest.raises(ConfigFault):
            config.with_overrides(workers=99)

    def test_to_dict_is_json_serializable(self):
        data = Config().to_dict()

        json.dumps(data)
        assert data["capture_mode"] == "on-failure"


class TestEnvironment:
    """Test cases for environment variable handling."""

    @patch.dict(os.environ, {"CI": "true"})
    def test_ci_detection(self):
        config = Config.from_env()

        assert config.ci_mode is True
        assert config.log_format == "json"

    @patch.dict(
        os.environ,
        {
            "FLAKEPROOF_BASE_URL": "https://api.example.com",
            "FLAKEPROOF_LOG_LEVEL": "DEBUG",
            "FLAKEPROOF_HEADLESS": "true",
            "FLAKEPROOF_WORKERS": "4",
            "FLAKEPROOF_MAX_ATTEMPTS_RUN": "5",
            "FLAKEPROOF_MAX_ATTEMPTS_INTERACTIVE": "2",
        },
    )
    def test_environment_overrides(self):
        config = Config.from_env()

        assert config.base_url == "https://api.example.com"
        assert config.log_level == "DEBUG"
        assert config.headless is True
        assert config.workers == 4
        assert config.max_attempts(TestMode.RUN) == 5
        assert config.max_attempts(TestMode.INTERACTIVE) == 2

    @patch.dict(os.environ, {"FLAKEPROOF_WORKERS": "many"})
    def test_invalid_environment_value_raises_config_fault(self):
        with pytest.raises(ConfigFault) as exc_info:
            Config.from_env()

        assert any("workers" in v for v in exc_info.value.violations)

    def test_no_environment_means_no_overrides(self):
        assert env_overrides() == {}


class TestLoadConfig:
    """Test cases for loading configuration files."""

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "flakeproof.yaml"
        path.write_text(
            "base_url: https://example.com\n"
            "workers: 2\n"
            "capture_mode: always\n"
            "max_attempts_by_mode:\n"
            "  run: 4\n"
            "sinks:\n"
            "  - type: console\n"
            "  - type: junit\n"
            "    output_path: reports/junit.xml\n"
        )

        config = load_config(path)

        assert config.base_url == "https://example.com"
        assert config.workers == 2
        assert config.capture_mode == CaptureMode.ALWAYS
        assert config.max_attempts(TestMode.RUN) == 4
        assert config.sinks[1].output_path == Path("reports/junit.xml")

    def test_json_file(self, tmp_path):
        path = tmp_path / "flakeproof.json"
        path.write_text(json.dumps({"default_timeout_ms": 5000}))

        assert load_config(path).default_timeout_ms == 5000

    def test_empty_yaml_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yml"
        path.write_text("")

        assert read_config_file(path) == {}
        assert load_config(path).workers == 1

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigFault, match="not found"):
            load_config(tmp_path / "missing.yaml")

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("workers = 2")

        with pytest.raises(ConfigFault, match="Unsupported"):
            load_config(path)

    def test_malformed_file(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")

        with pytest.raises(ConfigFault, match="parse"):
            load_config(path)

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigFault, match="mapping"):
            load_config(path)

    def test_unknown_keys_are_violations(self, tmp_path):
        path = tmp_path / "typo.yaml"
        path.write_text("wrokers: 2\n")

        with pytest.raises(ConfigFault) as exc_info:
            load_config(path)

        assert any("wrokers" in v for v in exc_info.value.violations)

    @patch.dict(os.environ, {"FLAKEPROOF_WORKERS": "3", "FLAKEPROOF_MAX_ATTEMPTS_RUN": "2"})
    def test_precedence_file_then_env_then_overrides(self, tmp_path):
        """Test that environment beats file and explicit overrides beat both."""
        path = tmp_path / "flakeproof.yaml"
        path.write_text("workers: 1\nmax_attempts_by_mode:\n  run: 5\n  interactive: 2\n")

        config = load_config(path, overrides={"workers": 8, "base_url": None})

        assert config.workers == 8
        assert config.max_attempts(TestMode.RUN) == 2
        assert config.max_attempts(TestMode.INTERACTIVE) == 2

    def test_override_attempts_merge(self):
        config = load_config(overrides={"max_attempts_by_mode": {"interactive": 3}})

        assert config.max_attempts(TestMode.RUN) == 3
        assert config.max_attempts(TestMode.INTERACTIVE) == 3
