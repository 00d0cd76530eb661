"""
flakeproof - retry-aware end-to-end test runner

Runs suites of independent HTTP and browser checks with per-mode retries,
hard timeouts, artifact capture on failure and fan-out reporting.
"""

__version__ = "0.1.0"
__author__ = "flakeproof contributors"

from .core.config import Config, load_config
from .core.exceptions import FlakeproofError
from .core.logging_config import setup_logging
from .core.types import Outcome, TestMode
from .execution.orchestrator import RunOrchestrator
from .execution.suite import Suite

__all__ = [
    "Config",
    "load_config",
    "FlakeproofError",
    "setup_logging",
    "Outcome",
    "TestMode",
    "RunOrchestrator",
    "Suite",
]
