"""
Capability provider.

Opens a fresh TestContext for every attempt and guarantees its resources
are released on every exit path, including faults and timeouts.
"""

import asyncio
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, AsyncIterator, Optional

import aiohttp
from playwright.async_api import async_playwright

from ..core.config import Config
from ..core.exceptions import InfrastructureFault
from ..core.logging_config import get_logger
from ..core.types import TestMode
from .base import CancellationToken
from .browser import BrowserSession
from .context import TestContext
from .http_client import HttpClient

if TYPE_CHECKING:
    from ..execution.models import TestCase


class CapabilityProvider(ABC):
    """Source of per-attempt test contexts."""

    async def __aenter__(self) -> "CapabilityProvider":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Release provider-wide resources."""

    @abstractmethod
    def open(
        self,
        test_case: "TestCase",
        attempt_number: int,
        cancel_token: CancellationToken,
        video_dir: Optional[Path] = None,
    ):
        """Async context manager yielding a TestContext for one attempt."""


class LiveCapabilityProvider(CapabilityProvider):
    """
    Provider backed by aiohttp and Playwright.

    The Playwright browser process is started on the first interactive
    attempt and shared by the run; each attempt gets its own browser
    context and page.
    """

    def __init__(self, config: Config, browser_type: str = "chromium"):
        self.config = config
        self.browser_type = browser_type
        self.logger = get_logger(__name__)

        self._playwright = None
        self._browser = None
        self._browser_lock: Optional[asyncio.Lock] = None

    async def _ensure_browser(self):
        if self._browser_lock is None:
            self._browser_lock = asyncio.Lock()

        async with self._browser_lock:
            if self._browser is not None:
                return self._browser
            try:
                self._playwright = await async_playwright().start()
                launcher = getattr(self._playwright, self.browser_type)
                self._browser = await launcher.launch(headless=self.config.is_headless)
            except Exception as e:
                if self._playwright is not None:
                    await self._playwright.stop()
                    self._playwright = None
                raise InfrastructureFault(
                    f"Browser capability unavailable: {e}",
                    component="browser",
                    operation="launch",
                ) from e

            self.logger.info(
                f"Launched {self.browser_type} browser",
                extra={"metadata": {"headless": self.config.is_headless}},
            )
            return self._browser

    @asynccontextmanager
    async def open(
        self,
        test_case: "TestCase",
        attempt_number: int,
        cancel_token: CancellationToken,
        video_dir: Optional[Path] = None,
    ) -> AsyncIterator[TestContext]:
        session = aiohttp.ClientSession()
        browser_session: Optional[BrowserSession] = None

        try:
            if test_case.mode == TestMode.INTERACTIVE:
                browser = await self._ensure_browser()
                context_options = {}
                if video_dir is not None:
                    context_options["record_video_dir"] = str(video_dir)
                browser_context = await browser.new_context(**context_options)
                try:
                    page = await browser_context.new_page()
                except Exception:
                    await browser_context.close()
                    raise
                browser_session = BrowserSession(browser_context, page, base_url=self.config.base_url)

            yield TestContext(
                test_id=test_case.id,
                attempt_number=attempt_number,
                mode=test_case.mode,
                cancel_token=cancel_token,
                base_url=self.config.base_url,
                http=HttpClient(session, base_url=self.config.base_url),
                browser=browser_session,
            )
        finally:
            if browser_session is not None:
                try:
                    await browser_session.close()
                except Exception as e:
                    self.logger.warning(f"Failed to close browser context for {test_case.id}: {e}")
            await session.close()

    async def close(self) -> None:
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                self.logger.warning(f"Failed to close browser: {e}")
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
