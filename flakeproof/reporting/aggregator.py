"""
Reporter aggregator.

Broadcasts every finalized result to each attached sink and computes the
suite verdict once the orchestrator signals completion. A sink that
raises is logged and skipped; it never blocks delivery to the others.
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..core.logging_config import get_logger
from ..execution.models import TestResult
from .models import SuiteSummary


@dataclass
class _SinkSlot:
    sink: object
    lock: threading.Lock = field(default_factory=threading.Lock)
    failures: int = 0

    @property
    def name(self) -> str:
        return getattr(self.sink, "name", type(self.sink).__name__)


class ReporterAggregator:
    """Fans results out to reporting sinks."""

    def __init__(self, run_id: Optional[str] = None):
        self.run_id = run_id
        self.logger = get_logger(__name__, run_id=run_id) if run_id else get_logger(__name__)

        self._slots: List[_SinkSlot] = []
        self._results: Dict[str, TestResult] = {}
        self._results_lock = threading.Lock()
        self._started_at = time.time()
        self._summary: Optional[SuiteSummary] = None

    def attach(self, sink) -> None:
        """Register a sink exposing on_result(result) and on_suite_complete(summary)."""
        for method in ("on_result", "on_suite_complete"):
            if not callable(getattr(sink, method, None)):
                raise TypeError(f"Sink {sink!r} does not implement {method}()")
        if any(slot.sink is sink for slot in self._slots):
            return
        self._slots.append(_SinkSlot(sink=sink))

    @property
    def sinks(self) -> List[object]:
        return [slot.sink for slot in self._slots]

    @property
    def results(self) -> List[TestResult]:
        """Published results in delivery order."""
        with self._results_lock:
            return list(self._results.values())

    def publish(self, result: TestResult) -> None:
        """Deliver a result to every attached sink exactly once."""
        with self._results_lock:
            if self._summary is not None:
                raise RuntimeError("Cannot publish results after the suite has completed")
            if result.test_id in self._results:
                raise ValueError(f"Result for {result.test_id} was already published")
            self._results[result.test_id] = result

        for slot in self._slots:
            with slot.lock:
                try:
                    slot.sink.on_result(result)
                except Exception as e:
                    slot.failures += 1
                    self.logger.warning(
                        f"Sink {slot.name} failed on result {result.test_id}: {e}",
                        extra={
                            "metadata": {
                                "sink": slot.name,
                                "test_id": result.test_id,
                                "error_type": type(e).__name__,
                            }
                        },
                    )

    def complete(self, duration: Optional[float] = None) -> SuiteSummary:
        """
        Compute the suite verdict and notify every sink.

        Calling complete() again returns the same summary without
        notifying the sinks a second time.
        """
        with self._results_lock:
            if self._summary is not None:
                return self._summary
            if duration is None:
                duration = time.time() - self._started_at
            self._summary = SuiteSummary.from_results(self._results.values(), duration=duration)

        for slot in self._slots:
            with slot.lock:
                try:
                    slot.sink.on_suite_complete(self._summary)
                except Exception as e:
                    slot.failures += 1
                    self.logger.warning(
                        f"Sink {slot.name} failed on suite completion: {e}",
                        extra={"metadata": {"sink": slot.name, "error_type": type(e).__name__}},
                    )

        self.logger.info(
            f"Suite completed: {self._summary.passed}/{self._summary.total} passed, "
            f"{self._summary.failed} failed, {self._summary.timed_out} timed out, "
            f"{self._summary.skipped} skipped",
            extra={"metadata": self._summary.model_dump()},
        )
        return self._summary

    @property
    def summary(self) -> Optional[SuiteSummary]:
        """The verdict, or None until complete() has been called."""
        return self._summary

    @property
    def exit_code(self) -> int:
        if self._summary is None:
            raise RuntimeError("Suite has not completed yet")
        return self._summary.exit_code

    def sink_failures(self) -> Dict[str, int]:
        """Number of contained faults per sink."""
        return {slot.name: slot.failures for slot in self._slots}
