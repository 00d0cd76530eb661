"""
Pydantic models for suite reporting.
"""

from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field

from ..core.types import Outcome
from ..execution.models import TestResult


class SuiteSummary(BaseModel):
    """Suite verdict computed once every result has been published."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    total: int = Field(..., ge=0, description="Total number of tests")
    passed: int = Field(..., ge=0, description="Number of passed tests")
    failed: int = Field(..., ge=0, description="Number of failed tests")
    timed_out: int = Field(..., ge=0, description="Number of timed out tests")
    skipped: int = Field(..., ge=0, description="Number of skipped tests")
    flaky: int = Field(0, ge=0, description="Tests that passed only after a retry")
    duration: float = Field(0.0, ge=0, description="Wall-clock suite duration in seconds")

    @classmethod
    def from_results(cls, results: Iterable[TestResult], duration: float = 0.0) -> "SuiteSummary":
        results = list(results)
        counts = {outcome: 0 for outcome in Outcome}
        for result in results:
            counts[result.final_outcome] += 1
        return cls(
            total=len(results),
            passed=counts[Outcome.PASS],
            failed=counts[Outcome.FAIL],
            timed_out=counts[Outcome.TIMED_OUT],
            skipped=counts[Outcome.SKIPPED],
            flaky=sum(1 for r in results if r.is_flaky),
            duration=duration,
        )

    @property
    def success(self) -> bool:
        return self.failed + self.timed_out == 0

    @property
    def exit_code(self) -> int:
        """0 when nothing failed or timed out, 1 otherwise."""
        return 0 if self.success else 1

    @property
    def success_rate(self) -> float:
        """Percentage of tests that passed."""
        if self.total == 0:
            return 0.0
        return self.passed / self.total * 100
