"""
Unit tests for the Playwright-backed browser capability and the live
capability provider. Playwright objects are mocked.
"""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from flakeproof.capabilities.base import CancellationToken
from flakeproof.capabilities.browser import BrowserSession, Element
from flakeproof.capabilities.http_client import HttpClient
from flakeproof.capabilities.provider import LiveCapabilityProvider
from flakeproof.core.exceptions import ElementNotFoundError, InfrastructureFault, TestFault, TimeoutFault
from flakeproof.core.types import TestMode


def make_locator(count=1):
    locator = MagicMock()
    locator.count = AsyncMock(return_value=count)
    locator.first = MagicMock(name="first")
    locator.nth = MagicMock(side_effect=lambda i: f"nth-{i}")
    return locator


@pytest.fixture
def page():
    page = MagicMock()
    page.url = "https://academybugs.com/"
    page.goto = AsyncMock()
    page.title = AsyncMock(return_value="AcademyBugs")
    page.screenshot = AsyncMock()
    page.locator = MagicMock(return_value=make_locator())
    return page


@pytest.fixture
def session(page):
    context = MagicMock()
    context.close = AsyncMock()
    return BrowserSession(context, page, base_url="https://academybugs.com")


class TestBrowserSession:
    """Test cases for BrowserSession."""

    async def test_visit_resolves_relative_urls(self, session, page):
        await session.visit("/contact")
        await session.visit("https://example.com/")

        assert [c.args[0] for c in page.goto.await_args_list] == [
            "https://academybugs.com/contact",
            "https://example.com/",
        ]

    async def test_title_and_url(self, session):
        assert await session.title() == "AcademyBugs"
        assert session.url == "https://academybugs.com/"

    async def test_locate_returns_first_match(self, session, page):
        locator = make_locator(count=3)
        page.locator.return_value = locator

        element = await session.locate("h1")

        assert element == Element(selector="h1", locator=locator.first)

    async def test_locate_missing_raises_typed_error(self, session, page):
        page.locator.return_value = make_locator(count=0)

        with pytest.raises(ElementNotFoundError) as exc_info:
            await session.locate("#missing")

        assert exc_info.value.selector == "#missing"
        assert exc_info.value.url == "https://academybugs.com/"
        assert isinstance(exc_info.value, TestFault)

    async def test_locate_all(self, session, page):
        page.locator.return_value = make_locator(count=2)

        elements = await session.locate_all("a")

        assert [e.locator for e in elements] == ["nth-0", "nth-1"]

    async def test_locate_all_empty(self, session, page):
        page.locator.return_value = make_locator(count=0)

        assert await session.locate_all("a") == []

    @pytest.mark.parametrize(
        "action,value,method,args",
        [
            ("click", None, "click", ()),
            ("fill", "hello", "fill", ("hello",)),
            ("type", "hello", "press_sequentially", ("hello",)),
            ("check", None, "check", ()),
            ("hover", None, "hover", ()),
            ("press", "Enter", "press", ("Enter",)),
            ("select", "2", "select_option", ("2",)),
        ],
    )
    async def test_act_dispatch(self, session, action, value, method, args):
        locator = MagicMock()
        setattr(locator, method, AsyncMock())

        await session.act(Element("input", locator), action, value)

        getattr(locator, method).assert_awaited_once_with(*args)

    async def test_act_unknown_action(self, session):
        with pytest.raises(TestFault, match="Unsupported action"):
            await session.act(Element("input", MagicMock()), "drag")

    async def test_act_missing_value(self, session):
        with pytest.raises(TestFault, match="requires a value"):
            await session.act(Element("input", MagicMock()), "fill")

    async def test_element_helpers(self):
        locator = MagicMock()
        locator.inner_text = AsyncMock(return_value="Hello")
        locator.get_attribute = AsyncMock(return_value="https://x")
        locator.is_visible = AsyncMock(return_value=True)
        element = Element("a", locator)

        assert await element.text() == "Hello"
        assert await element.attribute("href") == "https://x"
        assert await element.is_visible() is True

    async def test_screenshot(self, session, page, tmp_path):
        target = tmp_path / "nested" / "shot.png"

        path = await session.screenshot(target)

        assert path == target
        assert target.parent.is_dir()
        page.screenshot.assert_awaited_once_with(path=str(target), full_page=True)

    async def test_video_path(self, session, page):
        page.video = MagicMock()
        page.video.path = AsyncMock(return_value="/videos/abc.webm")

        assert await session.video_path() == Path("/videos/abc.webm")

    async def test_video_path_without_recording(self, session, page):
        page.video = None

        assert await session.video_path() is None

    async def test_close_is_idempotent(self, session):
        await session.close()
        await session.close()

        session.context.close.assert_awaited_once()


class TestCancellationToken:
    """Test cases for CancellationToken."""

    async def test_cancel(self):
        token = CancellationToken()
        assert not token.cancelled

        token.cancel("timed out")
        token.cancel("second reason ignored")

        assert token.cancelled
        assert token.reason == "timed out"
        await token.wait()

    def test_raise_if_cancelled(self):
        token = CancellationToken()
        token.raise_if_cancelled()

        token.cancel("deadline")

        with pytest.raises(TimeoutFault, match="deadline"):
            token.raise_if_cancelled()


@pytest.fixture
def playwright_stack(page):
    """Mocked async_playwright() chain returning the page fixture."""
    browser_context = MagicMock()
    browser_context.new_page = AsyncMock(return_value=page)
    browser_context.close = AsyncMock()

    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=browser_context)
    browser.close = AsyncMock()

    playwright = MagicMock()
    playwright.chromium.launch = AsyncMock(return_value=browser)
    playwright.stop = AsyncMock()

    manager = MagicMock()
    manager.start = AsyncMock(return_value=playwright)

    with patch("flakeproof.capabilities.provider.async_playwright", return_value=manager):
        yield playwright, browser, browser_context


class TestLiveCapabilityProvider:
    """Test cases for LiveCapabilityProvider."""

    async def test_run_mode_context_has_http_only(self, config, make_case, playwright_stack):
        playwright, _, _ = playwright_stack
        provider = LiveCapabilityProvider(config.with_overrides(base_url="https://api.example.com"))

        async with provider:
            async with provider.open(make_case("api"), 1, CancellationToken()) as ctx:
                assert isinstance(ctx.http, HttpClient)
                assert ctx.http.base_url == "https://api.example.com"
                assert ctx.browser is None
                session = ctx.http.session

        assert session.closed
        playwright.chromium.launch.assert_not_awaited()

    async def test_interactive_context_gets_fresh_page(self, config, make_case, playwright_stack, tmp_path):
        playwright, browser, browser_context = playwright_stack
        provider = LiveCapabilityProvider(config.with_overrides(headless=True))
        case = make_case("ui", mode=TestMode.INTERACTIVE)

        async with provider:
            async with provider.open(case, 1, CancellationToken(), video_dir=tmp_path) as ctx:
                assert isinstance(ctx.browser, BrowserSession)
            async with provider.open(case, 2, CancellationToken()):
                pass

        playwright.chromium.launch.assert_awaited_once_with(headless=True)
        assert browser.new_context.await_count == 2
        assert browser.new_context.await_args_list[0].kwargs == {"record_video_dir": str(tmp_path)}
        assert browser.new_context.await_args_list[1].kwargs == {}
        assert browser_context.close.await_count == 2
        browser.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()

    async def test_context_released_when_body_raises(self, config, make_case, playwright_stack):
        _, _, browser_context = playwright_stack
        provider = LiveCapabilityProvider(config)

        with pytest.raises(RuntimeError):
            async with provider.open(make_case("ui", mode=TestMode.INTERACTIVE), 1, CancellationToken()):
                raise RuntimeError("body exploded")

        browser_context.close.assert_awaited_once()
        await provider.close()

    async def test_launch_failure_is_infrastructure_fault(self, config, make_case, playwright_stack):
        playwright, _, _ = playwright_stack
        playwright.chromium.launch.side_effect = Exception("Executable doesn't exist")
        provider = LiveCapabilityProvider(config)

        with pytest.raises(InfrastructureFault, match="Browser capability unavailable"):
            async with provider.open(make_case("ui", mode=TestMode.INTERACTIVE), 1, CancellationToken()):
                pass

        playwright.stop.assert_awaited_once()
