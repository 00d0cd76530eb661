"""
Exception hierarchy for flakeproof.

Faults raised inside a test body, during artifact capture, or inside a
reporting sink are contained by the orchestrator and the aggregator.
Only ConfigFault is allowed to abort a run before any test executes.
"""

from typing import Optional, Dict, Any, List


class FlakeproofError(Exception):
    """Base exception class for all flakeproof errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
        }


class TestFault(FlakeproofError):
    """Raised when an assertion or logic check inside a test body fails."""

    __test__ = False

    def __init__(self, message: str, test_id: Optional[str] = None):
        super().__init__(message, "TEST_FAILED")
        self.test_id = test_id
        self.context.update({"test_id": test_id})


class TimeoutFault(FlakeproofError):
    """Raised when an attempt exceeds its wall-clock budget."""

    def __init__(self, message: str, test_id: Optional[str] = None, timeout_ms: Optional[int] = None):
        super().__init__(message, "TEST_TIMED_OUT")
        self.test_id = test_id
        self.timeout_ms = timeout_ms
        self.context.update({"test_id": test_id, "timeout_ms": timeout_ms})


class InfrastructureFault(FlakeproofError):
    """Raised when a capture, sink or capability fails outside a test's own logic."""

    def __init__(
        self,
        message: str,
        component: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message, "INFRASTRUCTURE_FAILED")
        self.component = component
        self.operation = operation
        self.context.update({"component": component, "operation": operation})


class ConfigFault(FlakeproofError):
    """Raised when the suite or run configuration is malformed."""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        violations: Optional[List[str]] = None,
    ):
        super().__init__(message, "CONFIG_INVALID")
        self.source = source
        self.violations = violations or []
        self.context.update({"source": source, "violations": self.violations})


class ElementNotFoundError(TestFault):
    """Raised when a selector matches no element on the current page."""

    def __init__(self, selector: str, url: Optional[str] = None):
        super().__init__(f"No element matches selector: {selector}")
        self.error_code = "ELEMENT_NOT_FOUND"
        self.selector = selector
        self.url = url
        self.context.update({"selector": selector, "url": url})


class HttpStatusError(TestFault):
    """Raised when an HTTP response carries an unexpected status code."""

    def __init__(self, status: int, method: str, url: str):
        super().__init__(f"{method} {url} returned unexpected status {status}")
        self.error_code = "HTTP_STATUS"
        self.status = status
        self.method = method
        self.url = url
        self.context.update({"status": status, "method": method, "url": url})


class SkipTest(FlakeproofError):
    """Raised by a test body to mark the attempt as skipped."""

    __test__ = False

    def __init__(self, reason: str = "skipped"):
        super().__init__(reason, "TEST_SKIPPED")
        self.reason = reason
