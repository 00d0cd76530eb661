"""
Reporting components for flakeproof.

Fans finalized results out to console, JSON Lines and JUnit sinks and
computes the suite verdict.
"""

from .aggregator import ReporterAggregator
from .models import SuiteSummary
from .sinks import ConsoleSink, JsonLinesSink, JUnitSink, ResultSink, build_sinks

__all__ = [
    "ReporterAggregator",
    "SuiteSummary",
    "ConsoleSink",
    "JsonLinesSink",
    "JUnitSink",
    "ResultSink",
    "build_sinks",
]
