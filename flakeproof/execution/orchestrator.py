"""
Run orchestrator.

Drives every test case through timed attempts, consults the retry policy
between attempts, triggers artifact capture and streams finalized results
to the reporter aggregator. Faults raised by a test body, by a capability
or by the capturer are contained at the per-test boundary.
"""

import asyncio
import time
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from ..capabilities.base import CancellationToken
from ..capabilities.provider import CapabilityProvider, LiveCapabilityProvider
from ..core.config import Config
from ..core.exceptions import ConfigFault, SkipTest, TimeoutFault
from ..core.logging_config import get_logger, log_performance
from ..core.run_context import generate_run_id
from ..core.types import CaptureMode, Outcome, TestMode
from .artifacts import ArtifactCapturer
from .models import ArtifactRef, ExecutionAttempt, TestCase, TestResult
from .retry import RetryPolicy


CANCEL_GRACE_SECONDS = 1.0


def _cancelled_from_outside() -> bool:
    """Whether the running task has a pending cancel request (always assumed before 3.11)."""
    task = asyncio.current_task()
    cancelling = getattr(task, "cancelling", None)
    if cancelling is None:
        return True
    return cancelling() > 0


def _consume_result(task: "asyncio.Future") -> None:
    if not task.cancelled():
        task.exception()


def format_error(error: BaseException) -> str:
    """Human-readable error detail for an attempt."""
    message = str(error).strip()
    name = type(error).__name__
    return f"{name}: {message}" if message else name


class RunOrchestrator:
    """
    Executes a suite of test cases with retries, timeouts and artifact capture.

    Tests run concurrently up to ``config.workers``; attempts of a single
    test always run one after another, each in a freshly opened context.
    """

    def __init__(
        self,
        config: Config,
        retry_policy: Optional[RetryPolicy] = None,
        capturer=None,
        aggregator=None,
        provider: Optional[CapabilityProvider] = None,
        run_id: Optional[str] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Immutable run configuration
            retry_policy: Retry policy, built from config when omitted
            capturer: Artifact capturer, an ArtifactCapturer when omitted
            aggregator: Optional ReporterAggregator receiving each result
            provider: Capability provider, the live aiohttp/Playwright one when omitted
            run_id: Run identifier, generated when omitted
        """
        self.config = config
        self.run_id = run_id or generate_run_id()
        self.retry_policy = retry_policy or RetryPolicy.from_config(config)
        self.capturer = capturer if capturer is not None else ArtifactCapturer(config, self.run_id)
        self.aggregator = aggregator
        self.provider = provider or LiveCapabilityProvider(config)
        self.logger = get_logger(__name__, run_id=self.run_id)

    def validate_suite(self, test_cases: List[TestCase]) -> None:
        """Reject malformed suites before anything executes."""
        violations = []
        seen = set()
        for index, test_case in enumerate(test_cases):
            if not isinstance(test_case, TestCase):
                violations.append(f"Entry {index} is not a TestCase: {type(test_case).__name__}")
                continue
            if test_case.id in seen:
                violations.append(f"Duplicate test id: {test_case.id}")
            seen.add(test_case.id)

        if violations:
            raise ConfigFault(
                f"Invalid suite: {'; '.join(violations)}",
                source="suite",
                violations=violations,
            )

    async def run_suite(self, test_cases: Iterable[TestCase]) -> List[TestResult]:
        """
        Run every test case and return one result per case in declaration order.

        Results are published to the aggregator as each test is finalized.
        Publication follows declaration order only when workers == 1.
        """
        test_cases = list(test_cases)
        self.validate_suite(test_cases)

        self.logger.info(
            f"Starting suite of {len(test_cases)} tests",
            extra={
                "metadata": {
                    "test_count": len(test_cases),
                    "workers": self.config.workers,
                    "max_attempts": {m.value: n for m, n in self.retry_policy.max_attempts_by_mode.items()},
                }
            },
        )

        start_time = time.time()
        results: List[Optional[TestResult]] = [None] * len(test_cases)

        async with self.provider:
            if self.config.workers == 1:
                for index, test_case in enumerate(test_cases):
                    results[index] = await self._run_and_publish(test_case)
            else:
                semaphore = asyncio.Semaphore(self.config.workers)

                async def worker(index: int, test_case: TestCase) -> None:
                    async with semaphore:
                        results[index] = await self._run_and_publish(test_case)

                tasks = [asyncio.ensure_future(worker(i, tc)) for i, tc in enumerate(test_cases)]
                try:
                    await asyncio.gather(*tasks)
                except BaseException:
                    # Siblings must not outlive the provider.
                    for task in tasks:
                        task.cancel()
                    await asyncio.gather(*tasks, return_exceptions=True)
                    raise

        counts: Dict[str, int] = {outcome.value: 0 for outcome in Outcome}
        for result in results:
            counts[result.final_outcome.value] += 1

        self.logger.info(
            f"Suite finished: {counts['pass']} passed, {counts['fail']} failed, "
            f"{counts['timed_out']} timed out, {counts['skipped']} skipped",
            extra={"metadata": {"duration": time.time() - start_time, **counts}},
        )
        return results

    async def _run_and_publish(self, test_case: TestCase) -> TestResult:
        result = await self.run_test(test_case)
        self.logger.info(
            f"Finalized {result.test_id}: {result.final_outcome.value}",
            extra={"metadata": result.to_summary()},
        )
        if self.aggregator is not None:
            self.aggregator.publish(result)
        return result

    async def run_test(self, test_case: TestCase) -> TestResult:
        """Run all attempts of one test case and finalize its result."""
        start_time = time.time()
        attempts: List[ExecutionAttempt] = []
        artifacts: List[ArtifactRef] = []

        if test_case.skip:
            now = datetime.now()
            attempts.append(
                ExecutionAttempt(
                    test_id=test_case.id,
                    attempt_number=1,
                    started_at=now,
                    ended_at=now,
                    outcome=Outcome.SKIPPED,
                    error_detail="Skipped by definition",
                )
            )
        else:
            attempt_number = 0
            while True:
                attempt_number += 1
                attempt, refs = await self.run_attempt(test_case, attempt_number)
                attempts.append(attempt)
                artifacts.extend(refs)

                if not self.retry_policy.should_retry(test_case.mode, attempt_number, attempt.outcome):
                    break

                self.logger.info(
                    f"Retrying {test_case.id} after {attempt.outcome.value} "
                    f"(attempt {attempt_number + 1}/{self.retry_policy.max_attempts(test_case.mode)})",
                    extra={
                        "metadata": {
                            "test_id": test_case.id,
                            "attempt": attempt_number,
                            "outcome": attempt.outcome.value,
                            "error_detail": attempt.error_detail,
                        }
                    },
                )

        result = TestResult(
            test_id=test_case.id,
            mode=test_case.mode,
            attempts=attempts,
            final_outcome=attempts[-1].outcome,
            artifacts=artifacts,
            suite=test_case.suite,
        )

        log_performance(
            self.logger,
            f"test_{test_case.id}",
            time.time() - start_time,
            test_id=test_case.id,
            outcome=result.final_outcome.value,
            attempts=len(attempts),
            artifacts_count=len(artifacts),
        )
        return result

    async def run_attempt(
        self, test_case: TestCase, attempt_number: int
    ) -> Tuple[ExecutionAttempt, List[ArtifactRef]]:
        """Execute one attempt in a fresh context and capture artifacts if required."""
        token = CancellationToken()
        timeout_ms = test_case.timeout_ms or self.config.default_timeout_ms
        started_at = datetime.now()
        ended_at: Optional[datetime] = None
        outcome: Optional[Outcome] = None
        error_detail: Optional[str] = None
        refs: List[ArtifactRef] = []
        fault: Optional[BaseException] = None
        video_dir = self._video_dir(test_case, attempt_number)

        self.logger.debug(
            f"Attempt {attempt_number} of {test_case.id}",
            extra={"metadata": {"test_id": test_case.id, "attempt": attempt_number, "timeout_ms": timeout_ms}},
        )

        try:
            async with self.provider.open(test_case, attempt_number, token, video_dir=video_dir) as context:
                context.capturer = self.capturer
                outcome, error_detail = await self._execute_body(test_case, context, token, timeout_ms)
                ended_at = datetime.now()

                if self._should_capture(outcome):
                    refs = await self._capture(test_case, attempt_number, context)
                refs = self._merge_artifacts(list(context.artifacts) + refs)
        except asyncio.CancelledError as e:
            if _cancelled_from_outside():
                raise
            fault = e
        except Exception as e:
            fault = e

        if fault is not None:
            if outcome is None:
                # The context could not be opened; the body never ran.
                outcome = Outcome.FAIL
                error_detail = format_error(fault)
                ended_at = datetime.now()
                self.logger.error(
                    f"Could not open capabilities for {test_case.id}: {error_detail}",
                    extra={"metadata": {"test_id": test_case.id, "attempt": attempt_number}},
                )
            else:
                self.logger.warning(
                    f"Failed to release capabilities for {test_case.id}: {format_error(fault)}",
                    extra={"metadata": {"test_id": test_case.id, "attempt": attempt_number}},
                )

        if video_dir is not None:
            refs = self._settle_videos(test_case, attempt_number, outcome, refs)

        attempt = ExecutionAttempt(
            test_id=test_case.id,
            attempt_number=attempt_number,
            started_at=started_at,
            ended_at=ended_at or datetime.now(),
            outcome=outcome,
            error_detail=error_detail,
        )

        level = "info" if outcome == Outcome.PASS else "warning"
        getattr(self.logger, level)(
            f"{test_case.id} attempt {attempt_number}: {outcome.value}",
            extra={
                "metadata": {
                    "test_id": test_case.id,
                    "attempt": attempt_number,
                    "outcome": outcome.value,
                    "duration": attempt.duration,
                    "error_detail": error_detail,
                }
            },
        )
        return attempt, refs

    async def _execute_body(
        self, test_case: TestCase, context, token: CancellationToken, timeout_ms: int
    ) -> Tuple[Outcome, Optional[str]]:
        """
        Run the body as its own task under a wall-clock deadline.

        An overrun is TIMED_OUT however the body reacts to cancellation.
        A CancelledError the body raises by itself is a FAIL; cancellation
        of the orchestrator's own task is propagated.
        """
        task = asyncio.ensure_future(test_case.body(context))
        try:
            done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if not done:
            token.cancel(f"timed out after {timeout_ms}ms")
            await self._cancel_body(test_case, task)
            return Outcome.TIMED_OUT, f"TimeoutFault: exceeded {timeout_ms}ms"

        if task.cancelled():
            return Outcome.FAIL, "CancelledError: test body was cancelled"

        error = task.exception()
        if error is None:
            return Outcome.PASS, None
        if isinstance(error, (TimeoutFault, asyncio.TimeoutError)):
            token.cancel(str(error) or type(error).__name__)
            return Outcome.TIMED_OUT, format_error(error)
        if isinstance(error, SkipTest):
            return Outcome.SKIPPED, error.reason
        if isinstance(error, Exception):
            return Outcome.FAIL, format_error(error)
        raise error

    async def _cancel_body(self, test_case: TestCase, task: "asyncio.Future") -> None:
        """Cancel an overrunning body, waiting a bounded time for it to unwind."""
        task.cancel()
        await asyncio.wait({task}, timeout=CANCEL_GRACE_SECONDS)
        if task.done():
            _consume_result(task)
            return

        self.logger.warning(
            f"{test_case.id} ignored cancellation and is still running",
            extra={"metadata": {"test_id": test_case.id, "grace_seconds": CANCEL_GRACE_SECONDS}},
        )
        task.add_done_callback(_consume_result)

    def _settle_videos(
        self, test_case: TestCase, attempt_number: int, outcome: Outcome, refs: List[ArtifactRef]
    ) -> List[ArtifactRef]:
        """Register finished videos once the browser context is closed, or drop unwanted ones."""
        try:
            if self._should_capture(outcome):
                return self.capturer.refresh(refs)
            self.capturer.discard_videos(test_case.id, attempt_number)
        except Exception as e:
            self.logger.warning(f"Could not settle video for {test_case.id}: {format_error(e)}")
        return refs

    def _should_capture(self, outcome: Outcome) -> bool:
        if self.config.capture_mode == CaptureMode.OFF:
            return False
        if self.config.capture_mode == CaptureMode.ALWAYS:
            return True
        return outcome != Outcome.PASS

    def _video_dir(self, test_case: TestCase, attempt_number: int) -> Optional[Path]:
        if (
            not self.config.capture_video
            or self.config.capture_mode == CaptureMode.OFF
            or test_case.mode != TestMode.INTERACTIVE
            or not hasattr(self.capturer, "attempt_dir")
        ):
            return None
        try:
            return self.capturer.attempt_dir(test_case.id, attempt_number)
        except Exception as e:
            self.logger.warning(f"Video recording disabled for {test_case.id}: {format_error(e)}")
            return None

    async def _capture(self, test_case: TestCase, attempt_number: int, context) -> List[ArtifactRef]:
        try:
            captured = await self.capturer.capture(test_case.id, attempt_number, context)
        except Exception as e:
            self.logger.warning(
                f"Artifact capture failed for {test_case.id} attempt {attempt_number}: {format_error(e)}",
                extra={
                    "metadata": {
                        "test_id": test_case.id,
                        "attempt": attempt_number,
                        "error_type": type(e).__name__,
                    }
                },
            )
            return []

        if captured is None:
            return []
        if isinstance(captured, ArtifactRef):
            return [captured]
        return list(captured)

    @staticmethod
    def _merge_artifacts(refs: List[ArtifactRef]) -> List[ArtifactRef]:
        """Drop repeated captures of the same artifact, keeping the latest."""
        merged: Dict[Tuple, ArtifactRef] = {}
        for ref in refs:
            merged[(ref.test_id, ref.attempt_number, ref.kind, ref.name)] = ref
        return list(merged.values())
