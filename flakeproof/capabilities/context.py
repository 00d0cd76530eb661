"""Per-attempt context handed to test bodies."""

from dataclasses import dataclass, field
from typing import Any, List, Optional
from urllib.parse import urljoin

from ..core.exceptions import SkipTest
from ..core.types import TestMode
from .base import CancellationToken, HttpCapability, InteractiveCapability


@dataclass
class TestContext:
    """
    Everything a test body may touch during one attempt.

    A new context, with new capability sessions, is created for every
    attempt, so nothing mutable is shared between attempts of a test.
    """

    __test__ = False

    test_id: str
    attempt_number: int
    mode: TestMode
    cancel_token: CancellationToken
    base_url: Optional[str] = None
    http: Optional[HttpCapability] = None
    browser: Optional[InteractiveCapability] = None
    capturer: Optional[Any] = None
    artifacts: List[Any] = field(default_factory=list)

    def url(self, path: str = "") -> str:
        """Absolute URL for a path under the base URL."""
        if not self.base_url or path.startswith(("http://", "https://")):
            return path
        return urljoin(self.base_url + "/", path.lstrip("/"))

    def skip(self, reason: str = "skipped") -> None:
        """Stop the attempt and report it as skipped."""
        raise SkipTest(reason)

    async def screenshot(self, name: str):
        """Capture a named screenshot of the current page, if there is one."""
        if self.capturer is None:
            return None
        ref = await self.capturer.capture_named(self.test_id, self.attempt_number, self, name)
        if ref is not None:
            self.artifacts.append(ref)
        return ref
