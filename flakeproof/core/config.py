"""
Configuration for flakeproof.

A single immutable Config value is built once at process start, from a
config file, environment variables and command-line overrides, and passed
explicitly to the orchestrator, retry policy, capturer and aggregator.
"""

import json
import os
from pathlib import Path
from typing import Optional, Dict, Any, List

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .exceptions import ConfigFault
from .types import CaptureMode, SinkType, TestMode


DEFAULT_MAX_ATTEMPTS = {
    TestMode.RUN: 3,
    TestMode.INTERACTIVE: 1,
}

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


class SinkConfig(BaseModel):
    """Configuration for one reporting sink."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    type: SinkType = Field(..., description="Sink implementation")
    output_path: Optional[Path] = Field(None, description="Output file for file-backed sinks")

    @model_validator(mode="after")
    def validate_output_path(self):
        """File-backed sinks need somewhere to write."""
        if self.type != SinkType.CONSOLE and self.output_path is None:
            raise ValueError(f"{self.type.value} sink requires an output_path")
        return self


class Config(BaseModel):
    """Immutable run configuration."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    # Target
    base_url: Optional[str] = Field(None, description="Base URL for relative requests and visits")

    # Environment detection
    ci_mode: bool = Field(False, description="Running under CI")
    headless: Optional[bool] = Field(None, description="Browser headless override")

    # Logging configuration
    log_level: str = Field("INFO", description="Root log level")
    log_format: str = Field("text", description="text or json")

    # Execution settings
    default_timeout_ms: int = Field(30000, gt=0, description="Timeout for cases that declare none")
    max_attempts_by_mode: Dict[TestMode, int] = Field(
        default_factory=lambda: dict(DEFAULT_MAX_ATTEMPTS),
        description="Maximum attempts per test mode",
    )
    workers: int = Field(1, ge=1, le=16, description="Number of tests executed concurrently")

    # Artifact management
    capture_mode: CaptureMode = Field(CaptureMode.ON_FAILURE, description="When to capture artifacts")
    capture_video: bool = Field(False, description="Record video for interactive tests")
    artifact_retention_days: int = Field(7, ge=1, le=365, description="Artifact retention in days")

    # Directory paths
    artifacts_dir: Path = Field(default_factory=lambda: Path.cwd() / "artifacts")
    logs_dir: Path = Field(default_factory=lambda: Path.cwd() / "logs")

    # Reporting
    sinks: List[SinkConfig] = Field(
        default_factory=lambda: [SinkConfig(type=SinkType.CONSOLE)],
        description="Reporting sinks",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v):
        level = str(v).upper()
        if level == "WARN":
            level = "WARNING"
        if level not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {VALID_LOG_LEVELS}")
        return level

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        if v not in ("text", "json"):
            raise ValueError("log_format must be 'text' or 'json'")
        return v

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v):
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v.rstrip("/") if v else v

    @field_validator("max_attempts_by_mode", mode="before")
    @classmethod
    def fill_max_attempts(cls, v):
        """Modes missing from the mapping fall back to the defaults."""
        merged = {mode.value: attempts for mode, attempts in DEFAULT_MAX_ATTEMPTS.items()}
        for mode, attempts in (v or {}).items():
            key = mode.value if isinstance(mode, TestMode) else str(mode)
            merged[key] = attempts
        return merged

    @field_validator("max_attempts_by_mode")
    @classmethod
    def validate_max_attempts(cls, v):
        for mode, attempts in v.items():
            if attempts < 1:
                raise ValueError(f"max attempts for {mode.value} must be >= 1, got {attempts}")
        return v

    @model_validator(mode="before")
    @classmethod
    def force_json_logs_in_ci(cls, data):
        if isinstance(data, dict) and data.get("ci_mode") and data.get("log_format", "text") == "text":
            data = {**data, "log_format": "json"}
        return data

    @property
    def is_headless(self) -> bool:
        """Effective headless mode: explicit override, otherwise headless in CI."""
        if self.headless is not None:
            return self.headless
        return self.ci_mode

    @property
    def debug_enabled(self) -> bool:
        return self.log_level == "DEBUG"

    def max_attempts(self, mode: TestMode) -> int:
        return self.max_attempts_by_mode[mode]

    def get_log_file_path(self) -> Path:
        """Get the main log file path."""
        return self.logs_dir / "flakeproof.log"

    def with_overrides(self, **changes: Any) -> "Config":
        """Return a validated copy with the given fields replaced."""
        data = self.model_dump()
        data.update({k: v for k, v in changes.items() if v is not None})
        return _build_config(data, source="overrides")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for logging."""
        return self.model_dump(mode="json")

    @classmethod
    def from_env(cls) -> "Config":
        """Create configuration from environment variables."""
        return _build_config(env_overrides(), source="environment")


def env_overrides() -> Dict[str, Any]:
    """Collect configuration values present in the environment."""
    values: Dict[str, Any] = {}

    if os.getenv("CI", "").lower() == "true":
        values["ci_mode"] = True

    base_url = os.getenv("FLAKEPROOF_BASE_URL")
    if base_url:
        values["base_url"] = base_url

    log_level = os.getenv("FLAKEPROOF_LOG_LEVEL")
    if log_level:
        values["log_level"] = log_level

    headless = os.getenv("FLAKEPROOF_HEADLESS")
    if headless is not None:
        values["headless"] = headless.lower() == "true"

    workers = os.getenv("FLAKEPROOF_WORKERS")
    if workers:
        values["workers"] = workers

    artifacts_dir = os.getenv("FLAKEPROOF_ARTIFACTS_DIR")
    if artifacts_dir:
        values["artifacts_dir"] = artifacts_dir

    attempts = {}
    for mode in TestMode:
        raw = os.getenv(f"FLAKEPROOF_MAX_ATTEMPTS_{mode.name}")
        if raw:
            attempts[mode.value] = raw
    if attempts:
        values["max_attempts_by_mode"] = attempts

    return values


def _build_config(data: Dict[str, Any], source: str) -> Config:
    try:
        return Config(**data)
    except ValidationError as e:
        violations = [
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
            for err in e.errors()
        ]
        raise ConfigFault(
            "Configuration validation failed: " + "; ".join(violations),
            source=source,
            violations=violations,
        ) from e


def read_config_file(path: Path) -> Dict[str, Any]:
    """Read a JSON or YAML configuration file into a dictionary."""
    path = Path(path)
    if not path.exists():
        raise ConfigFault(f"Configuration file not found: {path}", source=str(path))

    try:
        with open(path, "r", encoding="utf-8") as f:
            if path.suffix.lower() in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            elif path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                raise ConfigFault(
                    f"Unsupported configuration format: {path.suffix}",
                    source=str(path),
                )
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigFault(f"Failed to parse configuration file {path}: {e}", source=str(path)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigFault(
            f"Configuration file must contain a mapping: {path}",
            source=str(path),
        )
    return data


def load_config(
    path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> Config:
    """
    Build the run configuration.

    File values are applied first, then environment variables, then
    explicit overrides (typically from the command line). None-valued
    overrides are ignored.

    Raises:
        ConfigFault: if the file cannot be read or the merged values are invalid
    """
    data: Dict[str, Any] = {}
    if path is not None:
        data.update(read_config_file(path))

    env = env_overrides()
    if "max_attempts_by_mode" in env and isinstance(data.get("max_attempts_by_mode"), dict):
        merged = dict(data["max_attempts_by_mode"])
        merged.update(env.pop("max_attempts_by_mode"))
        data["max_attempts_by_mode"] = merged
    data.update(env)

    for key, value in (overrides or {}).items():
        if value is None:
            continue
        if key == "max_attempts_by_mode":
            merged = dict(data.get("max_attempts_by_mode") or {})
            merged.update(value)
            value = merged
        data[key] = value

    return _build_config(data, source=str(path) if path else "environment")
