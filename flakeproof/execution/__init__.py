"""
Test execution components for flakeproof.

This module provides suite definition, the retry policy, artifact capture
and the run orchestrator that ties them together.
"""

from .artifacts import ArtifactCapturer
from .models import ArtifactRecord, ArtifactRef, ExecutionAttempt, TestCase, TestResult
from .orchestrator import RunOrchestrator
from .retry import RetryPolicy
from .suite import Suite, load_suite, load_suites

__all__ = [
    "ArtifactCapturer",
    "ArtifactRecord",
    "ArtifactRef",
    "ExecutionAttempt",
    "TestCase",
    "TestResult",
    "RunOrchestrator",
    "RetryPolicy",
    "Suite",
    "load_suite",
    "load_suites",
]
