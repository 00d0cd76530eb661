"""
Data models for test execution.

Defines Pydantic models for test cases, execution attempts, artifact
references and per-test results. All of them are immutable once created.
"""

from datetime import datetime
from typing import Any, Awaitable, Callable, ClassVar, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..core.types import ArtifactKind, Outcome, TestMode


TestBody = Callable[[Any], Awaitable[Any]]


class TestCase(BaseModel):
    """A named, independently runnable check."""

    __test__: ClassVar[bool] = False

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(..., description="Identifier, unique within a suite")
    mode: TestMode = Field(TestMode.RUN, description="Execution mode")
    body: TestBody = Field(..., description="Async callable receiving a TestContext")
    timeout_ms: Optional[int] = Field(
        None, gt=0, description="Wall-clock budget per attempt; run default when unset"
    )
    skip: bool = Field(False, description="Report as skipped without running")
    suite: Optional[str] = Field(None, description="Name of the enclosing suite")

    @field_validator("id")
    @classmethod
    def validate_id(cls, v):
        if not v or not v.strip():
            raise ValueError("Test id cannot be empty")
        return v.strip()


class ExecutionAttempt(BaseModel):
    """One concrete execution of a test case."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    test_id: str
    attempt_number: int = Field(..., ge=1)
    started_at: datetime
    ended_at: datetime
    outcome: Outcome
    error_detail: Optional[str] = None

    @property
    def duration(self) -> float:
        """Attempt duration in seconds."""
        return (self.ended_at - self.started_at).total_seconds()


class ArtifactRef(BaseModel):
    """Reference to a captured diagnostic artifact."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    test_id: str
    attempt_number: int = Field(..., ge=1)
    kind: ArtifactKind
    location: str = Field(..., description="Path of the stored artifact")
    name: Optional[str] = Field(None, description="Label for body-requested screenshots")


class ArtifactRecord(BaseModel):
    """Registry entry for a stored artifact."""

    model_config = ConfigDict(extra="forbid")

    ref: ArtifactRef
    file_size: int = Field(0, ge=0, description="File size in bytes, 0 if not yet written")
    checksum: Optional[str] = Field(None, description="SHA-256 of the file contents")
    created_at: datetime = Field(default_factory=datetime.now)


class TestResult(BaseModel):
    """Normalized outcome of a test case across all of its attempts."""

    __test__: ClassVar[bool] = False

    model_config = ConfigDict(extra="forbid", frozen=True)

    test_id: str
    mode: TestMode
    attempts: List[ExecutionAttempt] = Field(..., min_length=1)
    final_outcome: Outcome
    artifacts: List[ArtifactRef] = Field(default_factory=list)
    suite: Optional[str] = None

    @model_validator(mode="after")
    def validate_attempt_history(self):
        numbers = [a.attempt_number for a in self.attempts]
        if numbers != list(range(1, len(numbers) + 1)):
            raise ValueError(f"Attempt numbers must be contiguous from 1, got {numbers}")
        if any(a.test_id != self.test_id for a in self.attempts):
            raise ValueError("All attempts must belong to the result's test")
        if self.final_outcome != self.attempts[-1].outcome:
            raise ValueError("final_outcome must equal the last attempt's outcome")
        return self

    @property
    def passed(self) -> bool:
        return self.final_outcome == Outcome.PASS

    @property
    def is_flaky(self) -> bool:
        """Passed, but only after at least one retry."""
        return self.passed and len(self.attempts) > 1

    @property
    def duration(self) -> float:
        """Total time spent across all attempts, in seconds."""
        return sum(a.duration for a in self.attempts)

    @property
    def error_detail(self) -> Optional[str]:
        return self.attempts[-1].error_detail

    def to_summary(self) -> Dict[str, Any]:
        """Create a summary dictionary for logging."""
        return {
            "test_id": self.test_id,
            "outcome": self.final_outcome.value,
            "attempts": len(self.attempts),
            "duration": self.duration,
            "artifacts_count": len(self.artifacts),
        }
