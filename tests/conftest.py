"""
Pytest configuration and shared fixtures for flakeproof tests.

Provides configuration, fake capability providers, fake browsers and
recording sinks for all test modules.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import List, Optional

import pytest

from flakeproof.capabilities.base import InteractiveCapability
from flakeproof.capabilities.context import TestContext
from flakeproof.capabilities.provider import CapabilityProvider
from flakeproof.core.config import Config
from flakeproof.core.types import TestMode
from flakeproof.execution.models import TestCase


class FakeBrowser(InteractiveCapability):
    """
    In-memory interactive capability writing placeholder screenshots.

    With a video_dir it behaves like a recording Playwright context: the
    video path is known at once but the file only appears on close().
    """

    VIDEO_BYTES = b"webm fake recording"

    def __init__(
        self,
        video: Optional[Path] = None,
        fail_screenshots: bool = False,
        video_dir: Optional[Path] = None,
    ):
        self.visited: List[str] = []
        self.video = video
        if video is None and video_dir is not None:
            self.video = Path(video_dir) / "recording.webm"
        self.records_video = video is None and video_dir is not None
        self.fail_screenshots = fail_screenshots
        self.closed = False

    async def visit(self, url):
        self.visited.append(url)

    async def locate(self, selector):
        return selector

    async def locate_all(self, selector):
        return [selector]

    async def act(self, element, action, value=None):
        return None

    async def screenshot(self, path):
        if self.fail_screenshots:
            raise RuntimeError("renderer crashed")
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"\x89PNG fake image")
        return path

    async def video_path(self):
        return self.video

    async def close(self):
        if self.records_video and not self.closed:
            self.video.parent.mkdir(parents=True, exist_ok=True)
            self.video.write_bytes(self.VIDEO_BYTES)
        self.closed = True


class FakeProvider(CapabilityProvider):
    """
    Provider handing out in-memory contexts.

    Records every opened and released context so tests can check that
    each attempt gets a fresh one and that all of them are released.
    """

    def __init__(self, base_url: Optional[str] = None, fail_open_attempts=(), browser_factory=None):
        self.base_url = base_url
        self.fail_open_attempts = set(fail_open_attempts)
        self.browser_factory = browser_factory or FakeBrowser
        self.opened: List[TestContext] = []
        self.released: List[TestContext] = []
        self.video_dirs: List[Optional[Path]] = []
        self.entered = False
        self.closed = False

    async def __aenter__(self):
        self.entered = True
        return self

    async def close(self):
        self.closed = True

    @asynccontextmanager
    async def open(self, test_case, attempt_number, cancel_token, video_dir=None):
        if (test_case.id, attempt_number) in self.fail_open_attempts:
            raise ConnectionError("browser unavailable")
        self.video_dirs.append(video_dir)
        browser = self.browser_factory(video_dir=video_dir) if test_case.mode == TestMode.INTERACTIVE else None
        context = TestContext(
            test_id=test_case.id,
            attempt_number=attempt_number,
            mode=test_case.mode,
            cancel_token=cancel_token,
            base_url=self.base_url,
            browser=browser,
        )
        self.opened.append(context)
        try:
            yield context
        finally:
            if browser is not None:
                await browser.close()
            self.released.append(context)


class RecordingSink:
    """Sink remembering everything it receives."""

    name = "recording"

    def __init__(self):
        self.results = []
        self.summaries = []

    def on_result(self, result):
        self.results.append(result)

    def on_suite_complete(self, summary):
        self.summaries.append(summary)


class ExplodingSink(RecordingSink):
    """Sink that raises on every call after recording it."""

    name = "exploding"

    def on_result(self, result):
        super().on_result(result)
        raise RuntimeError("sink is broken")

    def on_suite_complete(self, summary):
        super().on_suite_complete(summary)
        raise RuntimeError("sink is broken")


@pytest.fixture
def config(tmp_path):
    """Configuration writing artifacts and logs into a temporary directory."""
    return Config(
        artifacts_dir=tmp_path / "artifacts",
        logs_dir=tmp_path / "logs",
        default_timeout_ms=1000,
        max_attempts_by_mode={TestMode.RUN: 3, TestMode.INTERACTIVE: 1},
    )


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def make_case():
    """Factory for test cases with sensible defaults."""

    def _make(test_id="sample test", body=None, mode=TestMode.RUN, **kwargs):
        if body is None:

            async def body(ctx):
                return None

        return TestCase(id=test_id, mode=mode, body=body, **kwargs)

    return _make


@pytest.fixture
def recording_sink():
    return RecordingSink()


@pytest.fixture
def exploding_sink():
    return ExplodingSink()
