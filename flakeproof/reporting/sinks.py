"""
Reporting sinks.

Console output for humans, JSON Lines for machines and JUnit XML for CI
systems. Sinks are synchronous; the aggregator serializes calls per sink.
"""

import json
import sys
from abc import ABC, abstractmethod
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional, TextIO

from jinja2 import Environment

from ..core.config import Config
from ..core.exceptions import ConfigFault
from ..core.logging_config import get_logger
from ..core.types import Outcome, SinkType
from ..execution.models import TestResult
from .models import SuiteSummary


class ResultSink(ABC):
    """Consumer of finalized results."""

    name = "sink"

    @abstractmethod
    def on_result(self, result: TestResult) -> None:
        """Receive one finalized result."""

    @abstractmethod
    def on_suite_complete(self, summary: SuiteSummary) -> None:
        """Receive the suite verdict after the last result."""


class ConsoleSink(ResultSink):
    """Human-readable progress and summary."""

    name = "console"

    SYMBOLS = {
        Outcome.PASS: "✅",
        Outcome.FAIL: "❌",
        Outcome.TIMED_OUT: "⏱️",
        Outcome.SKIPPED: "⏭️",
    }

    def __init__(self, stream: Optional[TextIO] = None, verbose: bool = False):
        self.stream = stream or sys.stdout
        self.verbose = verbose

    def _write(self, line: str = "") -> None:
        self.stream.write(line + "\n")
        self.stream.flush()

    def on_result(self, result: TestResult) -> None:
        symbol = self.SYMBOLS[result.final_outcome]
        line = f"{symbol} {result.test_id} ({result.duration:.2f}s)"
        if len(result.attempts) > 1:
            line += f" [{len(result.attempts)} attempts]"
        if result.is_flaky:
            line += " flaky"
        self._write(line)

        if result.final_outcome in (Outcome.FAIL, Outcome.TIMED_OUT) and result.error_detail:
            self._write(f"   {result.error_detail}")
        if self.verbose:
            for attempt in result.attempts[:-1]:
                self._write(
                    f"   attempt {attempt.attempt_number}: {attempt.outcome.value}"
                    + (f" - {attempt.error_detail}" if attempt.error_detail else "")
                )
            for artifact in result.artifacts:
                self._write(f"   📎 {artifact.kind.value}: {artifact.location}")

    def on_suite_complete(self, summary: SuiteSummary) -> None:
        self._write()
        self._write(f"Tests: {summary.total}")
        self._write(f"  Passed:    {summary.passed}")
        self._write(f"  Failed:    {summary.failed}")
        self._write(f"  Timed out: {summary.timed_out}")
        self._write(f"  Skipped:   {summary.skipped}")
        if summary.flaky:
            self._write(f"  Flaky:     {summary.flaky}")
        self._write(f"Duration: {summary.duration:.2f}s")
        self._write("✅ Suite passed" if summary.success else "❌ Suite failed")


class JsonLinesSink(ResultSink):
    """One JSON object per result, followed by a summary record."""

    name = "json"

    def __init__(self, output_path: Path, run_id: Optional[str] = None):
        self.output_path = Path(output_path)
        self.run_id = run_id
        self._handle: Optional[TextIO] = None

    def _file(self) -> TextIO:
        if self._handle is None:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            self._handle = open(self.output_path, "w", encoding="utf-8")
        return self._handle

    def _emit(self, record: Dict) -> None:
        handle = self._file()
        handle.write(json.dumps(record, default=str) + "\n")
        handle.flush()

    def on_result(self, result: TestResult) -> None:
        record = {"type": "result", "run_id": self.run_id}
        record.update(result.model_dump(mode="json"))
        record["duration"] = result.duration
        record["flaky"] = result.is_flaky
        self._emit(record)

    def on_suite_complete(self, summary: SuiteSummary) -> None:
        record = {"type": "summary", "run_id": self.run_id}
        record.update(summary.model_dump(mode="json"))
        record["exit_code"] = summary.exit_code
        try:
            self._emit(record)
        finally:
            self.close()

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None


JUNIT_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<testsuites name="{{ run_id }}"
            tests="{{ summary.total }}"
            failures="{{ summary.failed }}"
            errors="{{ summary.timed_out }}"
            skipped="{{ summary.skipped }}"
            time="{{ '%.3f' % summary.duration }}">
{%- for suite_name, results in suites %}
    <testsuite name="{{ suite_name }}"
               tests="{{ results | length }}"
               failures="{{ results | selectattr('final_outcome.value', 'equalto', 'fail') | list | length }}"
               errors="{{ results | selectattr('final_outcome.value', 'equalto', 'timed_out') | list | length }}"
               skipped="{{ results | selectattr('final_outcome.value', 'equalto', 'skipped') | list | length }}">
    {%- for test in results %}
        <testcase name="{{ test.test_id }}"
                  classname="{{ suite_name }}"
                  time="{{ '%.3f' % test.duration }}">
            <properties>
                <property name="mode" value="{{ test.mode.value }}" />
                <property name="attempts" value="{{ test.attempts | length }}" />
                <property name="flaky" value="{{ test.is_flaky | lower }}" />
            </properties>
            {%- if test.final_outcome.value == "fail" %}
            <failure message="{{ test.error_detail or 'Test failed' }}">
{%- for attempt in test.attempts %}
attempt {{ attempt.attempt_number }}: {{ attempt.outcome.value }}{% if attempt.error_detail %} - {{ attempt.error_detail }}{% endif %}
{%- endfor %}
            </failure>
            {%- elif test.final_outcome.value == "timed_out" %}
            <error type="timeout" message="{{ test.error_detail or 'Test timed out' }}" />
            {%- elif test.final_outcome.value == "skipped" %}
            <skipped message="{{ test.error_detail or 'Test skipped' }}" />
            {%- endif %}
            {%- if test.artifacts %}
            <system-out>
{%- for artifact in test.artifacts %}
[[ATTACHMENT|{{ artifact.location }}]]
{%- endfor %}
            </system-out>
            {%- endif %}
        </testcase>
    {%- endfor %}
    </testsuite>
{%- endfor %}
</testsuites>
"""


class JUnitSink(ResultSink):
    """JUnit XML report written when the suite completes."""

    name = "junit"

    DEFAULT_SUITE = "flakeproof"

    def __init__(self, output_path: Path, run_id: Optional[str] = None):
        self.output_path = Path(output_path)
        self.run_id = run_id or self.DEFAULT_SUITE
        self._results: List[TestResult] = []
        self._env = Environment(autoescape=True)

    def on_result(self, result: TestResult) -> None:
        self._results.append(result)

    def _grouped(self):
        groups: Dict[str, List[TestResult]] = defaultdict(list)
        for result in self._results:
            groups[result.suite or self.DEFAULT_SUITE].append(result)
        return list(groups.items())

    def render(self, summary: SuiteSummary) -> str:
        template = self._env.from_string(JUNIT_TEMPLATE)
        return template.render(run_id=self.run_id, summary=summary, suites=self._grouped())

    def on_suite_complete(self, summary: SuiteSummary) -> None:
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.output_path, "w", encoding="utf-8") as f:
            f.write(self.render(summary))


def build_sinks(
    config: Config, run_id: Optional[str] = None, stream: Optional[TextIO] = None
) -> List[ResultSink]:
    """Instantiate the sinks named in the configuration."""
    logger = get_logger(__name__)
    sinks: List[ResultSink] = []

    for sink_config in config.sinks:
        if sink_config.type == SinkType.CONSOLE:
            sinks.append(ConsoleSink(stream=stream, verbose=config.debug_enabled))
        elif sink_config.type == SinkType.JSON:
            sinks.append(JsonLinesSink(sink_config.output_path, run_id=run_id))
        elif sink_config.type == SinkType.JUNIT:
            sinks.append(JUnitSink(sink_config.output_path, run_id=run_id))
        else:
            raise ConfigFault(f"Unsupported sink type: {sink_config.type}", source="sinks")

    logger.debug(f"Built {len(sinks)} sinks", extra={"metadata": {"sinks": [s.name for s in sinks]}})
    return sinks
