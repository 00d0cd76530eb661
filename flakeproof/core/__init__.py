"""Core components for flakeproof."""

from .config import Config, SinkConfig, load_config
from .exceptions import (
    FlakeproofError,
    TestFault,
    TimeoutFault,
    InfrastructureFault,
    ConfigFault,
    ElementNotFoundError,
    HttpStatusError,
    SkipTest,
)
from .logging_config import setup_logging, get_logger
from .run_context import RunContext, generate_run_id
from .types import TestMode, Outcome, ArtifactKind, CaptureMode, SinkType

__all__ = [
    "Config",
    "SinkConfig",
    "load_config",
    "FlakeproofError",
    "TestFault",
    "TimeoutFault",
    "InfrastructureFault",
    "ConfigFault",
    "ElementNotFoundError",
    "HttpStatusError",
    "SkipTest",
    "setup_logging",
    "get_logger",
    "RunContext",
    "generate_run_id",
    "TestMode",
    "Outcome",
    "ArtifactKind",
    "CaptureMode",
    "SinkType",
]
