"""Shared enumerations for flakeproof."""

from enum import Enum


class TestMode(Enum):
    """Declared execution mode of a test case."""

    __test__ = False

    RUN = "run"
    INTERACTIVE = "interactive"


class Outcome(Enum):
    """Categorical result of one attempt."""

    PASS = "pass"
    FAIL = "fail"
    TIMED_OUT = "timed_out"
    SKIPPED = "skipped"


class ArtifactKind(Enum):
    """Types of diagnostic artifacts."""

    SCREENSHOT = "screenshot"
    VIDEO = "video"


class CaptureMode(Enum):
    """When the artifact capturer runs."""

    OFF = "off"
    ON_FAILURE = "on-failure"
    ALWAYS = "always"


class SinkType(Enum):
    """Built-in reporting sinks."""

    CONSOLE = "console"
    JSON = "json"
    JUNIT = "junit"
