"""
Retry policy.

Decides, from the outcome category alone, whether a finished attempt is
retried. Error content is never inspected: the policy models flaky
infrastructure, not semantic errors.
"""

from types import MappingProxyType
from typing import Mapping, Optional

from ..core.config import Config, DEFAULT_MAX_ATTEMPTS
from ..core.exceptions import ConfigFault
from ..core.types import Outcome, TestMode


RETRYABLE_OUTCOMES = frozenset({Outcome.FAIL, Outcome.TIMED_OUT})


class RetryPolicy:
    """Stateless retry decision keyed by test mode."""

    def __init__(self, max_attempts_by_mode: Optional[Mapping[TestMode, int]] = None):
        limits = dict(DEFAULT_MAX_ATTEMPTS)
        limits.update(max_attempts_by_mode or {})

        violations = [
            f"{mode.value}: max attempts must be >= 1, got {attempts}"
            for mode, attempts in limits.items()
            if not isinstance(attempts, int) or attempts < 1
        ]
        if violations:
            raise ConfigFault(
                "Invalid retry policy: " + "; ".join(violations),
                source="retry_policy",
                violations=violations,
            )

        self._limits = MappingProxyType(limits)

    @classmethod
    def from_config(cls, config: Config) -> "RetryPolicy":
        return cls(config.max_attempts_by_mode)

    @property
    def max_attempts_by_mode(self) -> Mapping[TestMode, int]:
        return self._limits

    def max_attempts(self, mode: TestMode) -> int:
        return self._limits[mode]

    def should_retry(self, mode: TestMode, attempts_so_far: int, last_outcome: Outcome) -> bool:
        """
        Decide whether another attempt should run.

        Args:
            mode: Declared mode of the test case
            attempts_so_far: Number of attempts already recorded
            last_outcome: Outcome of the most recent attempt

        Returns:
            True only for a Fail or TimedOut outcome with attempts left
        """
        if last_outcome == Outcome.PASS:
            return False
        if attempts_so_far >= self._limits[mode]:
            return False
        return last_outcome in RETRYABLE_OUTCOMES

    def __repr__(self) -> str:
        limits = ", ".join(f"{m.value}={n}" for m, n in self._limits.items())
        return f"RetryPolicy({limits})"
