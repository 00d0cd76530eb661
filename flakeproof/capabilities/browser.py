"""
Interactive capability backed by Playwright.

One BrowserSession wraps one browser context and page. The provider
creates a new session for every attempt and closes it afterwards.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional
from urllib.parse import urljoin

from ..core.exceptions import ElementNotFoundError, TestFault
from ..core.logging_config import get_logger
from .base import InteractiveCapability


ACTIONS = ("click", "fill", "type", "check", "uncheck", "hover", "press", "select")


@dataclass(frozen=True)
class Element:
    """Handle to an element located on the current page."""

    selector: str
    locator: Any

    async def text(self) -> str:
        return await self.locator.inner_text()

    async def attribute(self, name: str) -> Optional[str]:
        return await self.locator.get_attribute(name)

    async def is_visible(self) -> bool:
        return await self.locator.is_visible()


class BrowserSession(InteractiveCapability):
    """Playwright page wrapper implementing the interactive capability."""

    def __init__(self, context: Any, page: Any, base_url: Optional[str] = None):
        self.context = context
        self.page = page
        self.base_url = base_url
        self.logger = get_logger(__name__)
        self._closed = False

    @property
    def url(self) -> str:
        return self.page.url

    async def title(self) -> str:
        return await self.page.title()

    def resolve(self, url: str) -> str:
        if url.startswith(("http://", "https://")) or not self.base_url:
            return url
        return urljoin(self.base_url + "/", url.lstrip("/"))

    async def visit(self, url: str) -> None:
        target = self.resolve(url)
        self.logger.debug(f"Visiting {target}")
        await self.page.goto(target)

    async def locate(self, selector: str) -> Element:
        locator = self.page.locator(selector)
        if await locator.count() == 0:
            raise ElementNotFoundError(selector, url=self.page.url)
        return Element(selector=selector, locator=locator.first)

    async def locate_all(self, selector: str) -> List[Element]:
        locator = self.page.locator(selector)
        count = await locator.count()
        return [Element(selector=selector, locator=locator.nth(i)) for i in range(count)]

    async def act(self, element: Element, action: str, value: Optional[str] = None) -> None:
        """
        Perform a user action on an element.

        Supported actions: click, fill, type, check, uncheck, hover,
        press and select. fill, type, press and select need a value.
        """
        if action not in ACTIONS:
            raise TestFault(f"Unsupported action '{action}' on {element.selector}")
        if action in ("fill", "type", "press", "select") and value is None:
            raise TestFault(f"Action '{action}' on {element.selector} requires a value")

        locator = element.locator
        if action == "click":
            await locator.click()
        elif action == "fill":
            await locator.fill(value)
        elif action == "type":
            await locator.press_sequentially(value)
        elif action == "check":
            await locator.check()
        elif action == "uncheck":
            await locator.uncheck()
        elif action == "hover":
            await locator.hover()
        elif action == "press":
            await locator.press(value)
        elif action == "select":
            await locator.select_option(value)

    async def screenshot(self, path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        await self.page.screenshot(path=str(path), full_page=True)
        return path

    async def video_path(self) -> Optional[Path]:
        video = self.page.video
        if video is None:
            return None
        return Path(await video.path())

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.context.close()
