"""
browser.py - Async Playwright renderer for JavaScript-heavy changelog pages.

* `PlaywrightClient` owns the browser process for one orchestrator run
  (`stealth` flag: custom UA, navigator.webdriver removed).
* `PlaywrightRenderer.render(url)` opens a fresh context + page per source and
  always closes it, whatever happens inside the block.
* Every Playwright error crossing the `Document` boundary becomes a
  `RenderError` (or `RenderTimeout`) so the crawler core never imports
  Playwright.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import random
from contextlib import asynccontextmanager
from types import TracebackType
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Type

try:
    from playwright.async_api import (
        async_playwright,
        Browser,
        BrowserContext,
        BrowserType,
        ElementHandle,
        Error as PlaywrightError,
        Page,
        TimeoutError as PlaywrightTimeout,
    )
except ImportError as e:  # pragma: no cover
    raise ImportError(
        "Package 'playwright' is required.  Install with:  pip install playwright"
    ) from e

from ..errors import RenderError, RenderTimeout
from ..interfaces import Document, Element, Renderer

logger = logging.getLogger(__name__)
DEFAULT_STEALTH_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.%d.%d Safari/537.36"
    % (random.randint(0, 9999), random.randint(0, 199))
)

STEALTH_INIT_SCRIPT = """
// Remove webdriver property
Object.defineProperty(navigator, 'webdriver', {
  get: () => undefined
});
Object.defineProperty(navigator, 'languages', {
  get: () => ['en-US', 'en'],
});
"""

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
]


def _translate_errors(method):
    """Re-raise Playwright errors as render errors tagged with the page URL."""

    @functools.wraps(method)
    async def wrapper(self, *args, **kwargs):
        try:
            return await method(self, *args, **kwargs)
        except PlaywrightTimeout as e:
            raise RenderTimeout(self.url, str(e).splitlines()[0]) from e
        except PlaywrightError as e:
            raise RenderError(self.url, str(e).splitlines()[0]) from e

    return wrapper


class PlaywrightClient:
    """
    Thin wrapper around Playwright holding one browser.

    Examples
    --------
    async with PlaywrightClient(stealth=True) as pw:
        context = await pw.new_context()
    """

    def __init__(
        self,
        *,
        headless: bool = True,
        browser_type: str = "chromium",
        stealth: bool = False,
        user_agent: Optional[str] = None,
        extra_launch_kwargs: Optional[Dict[str, Any]] = None,
        extra_context_kwargs: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.headless = headless
        self.browser_type = browser_type.lower()
        self.stealth = stealth
        self.user_agent = user_agent
        self._launch_kwargs = {"args": LAUNCH_ARGS, **(extra_launch_kwargs or {})}
        self._context_kwargs = extra_context_kwargs or {}

        self._playwright = None
        self._browser: Optional[Browser] = None

    # --------------------------------------------------------------------- #
    # Async context-manager sugar
    async def __aenter__(self) -> "PlaywrightClient":  # noqa: D401
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        await self.stop()

    # --------------------------------------------------------------------- #
    # Lifecycle helpers
    async def start(self) -> None:
        """Launch the browser if not already started."""
        if self._browser:
            return

        self._playwright = await async_playwright().start()
        browser_launcher: BrowserType

        if self.browser_type == "chromium":
            browser_launcher = self._playwright.chromium
        elif self.browser_type == "firefox":
            browser_launcher = self._playwright.firefox
        elif self.browser_type == "webkit":
            browser_launcher = self._playwright.webkit
        else:  # pragma: no cover
            raise ValueError(f"Unsupported browser type: {self.browser_type}")

        self._browser = await browser_launcher.launch(
            headless=self.headless, **self._launch_kwargs
        )
        logger.info(
            "Playwright started: %s (headless=%s, stealth=%s)",
            self.browser_type,
            self.headless,
            self.stealth,
        )

    async def stop(self) -> None:
        """Gracefully close browser & Playwright."""
        if self._browser:
            await self._browser.close()
            self._browser = None
        if self._playwright:
            await self._playwright.stop()
            self._playwright = None
        logger.info("Playwright stopped")

    async def new_context(self) -> BrowserContext:
        """Return an isolated browser context (own cookies, own pages)."""
        if not self._browser:
            await self.start()

        context_kwargs: Dict[str, Any] = {
            "ignore_https_errors": True,
            "viewport": {"width": 1280, "height": 1600},
            **self._context_kwargs,
        }
        if self.stealth:
            context_kwargs.setdefault("user_agent", self.user_agent or DEFAULT_STEALTH_UA)
        elif self.user_agent:
            context_kwargs.setdefault("user_agent", self.user_agent)

        context = await self._browser.new_context(**context_kwargs)
        if self.stealth:
            await context.add_init_script(STEALTH_INIT_SCRIPT)
        return context


# ------------------------------------------------------------------------- #
# Document adapters


class PlaywrightElement(Element):
    def __init__(self, handle: ElementHandle, url: str):
        self._handle = handle
        self.url = url

    @_translate_errors
    async def text(self) -> str:
        return (await self._handle.text_content() or "").strip()

    @_translate_errors
    async def attribute(self, name: str) -> Optional[str]:
        return await self._handle.get_attribute(name)

    @_translate_errors
    async def tag_name(self) -> str:
        return await self._handle.evaluate("el => el.tagName")

    @_translate_errors
    async def query(self, selector: str) -> Optional[Element]:
        handle = await self._handle.query_selector(selector)
        return PlaywrightElement(handle, self.url) if handle else None

    @_translate_errors
    async def query_all(self, selector: str) -> List[Element]:
        return [PlaywrightElement(h, self.url) for h in await self._handle.query_selector_all(selector)]

    @_translate_errors
    async def query_texts(self, selector: str) -> List[str]:
        texts = await self._handle.eval_on_selector_all(
            selector, "els => els.map(el => (el.textContent || '').trim())"
        )
        return list(texts)

    @_translate_errors
    async def next_sibling(self) -> Optional[Element]:
        js_handle = await self._handle.evaluate_handle("el => el.nextElementSibling")
        handle = js_handle.as_element()
        return PlaywrightElement(handle, self.url) if handle else None


class PlaywrightDocument(Document):
    def __init__(self, page: Page, url: str):
        self.page = page
        self.url = url

    @_translate_errors
    async def query(self, selector: str) -> Optional[Element]:
        handle = await self.page.query_selector(selector)
        return PlaywrightElement(handle, self.url) if handle else None

    @_translate_errors
    async def query_all(self, selector: str) -> List[Element]:
        return [PlaywrightElement(h, self.url) for h in await self.page.query_selector_all(selector)]

    @_translate_errors
    async def query_texts(self, selector: str) -> List[str]:
        texts = await self.page.eval_on_selector_all(
            selector, "els => els.map(el => (el.textContent || '').trim())"
        )
        return list(texts)

    @_translate_errors
    async def scroll_height(self) -> int:
        return int(await self.page.evaluate("() => document.body.scrollHeight"))

    @_translate_errors
    async def scroll_to(self, fraction: float = 1.0) -> None:
        await self.page.evaluate(
            "f => window.scrollTo(0, document.body.scrollHeight * f)", fraction
        )

    @_translate_errors
    async def click_first_visible(self, selectors: Sequence[str]) -> Optional[str]:
        for sel in selectors:
            try:
                button = await self.page.query_selector(sel)
                if button is None or not await button.is_visible():
                    continue
                await button.scroll_into_view_if_needed(timeout=5_000)
                await button.click(timeout=5_000)
                return sel
            except PlaywrightTimeout:
                continue
            except PlaywrightError as e:
                logger.debug("Click failed for %s: %s", sel, e)
        return None


class PlaywrightRenderer(Renderer):
    """Renderer handing out one fresh browser context per source crawl."""

    def __init__(
        self,
        *,
        headless: bool = True,
        timeout_ms: int = 30_000,
        settle_seconds: float = 5.0,
        stealth: bool = True,
        wait_until: str = "load",
    ) -> None:
        self.timeout_ms = timeout_ms
        self.settle_seconds = settle_seconds
        self.wait_until = wait_until
        self._client = PlaywrightClient(headless=headless, stealth=stealth)

    async def __aenter__(self) -> "PlaywrightRenderer":
        await self._client.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self._client.stop()

    @asynccontextmanager
    async def render(self, url: str) -> AsyncIterator[Document]:
        try:
            context = await self._client.new_context()
        except PlaywrightError as e:
            raise RenderError(url, f"browser unavailable: {e}") from e

        try:
            page = await context.new_page()
            page.set_default_timeout(self.timeout_ms)
            logger.info("Navigating to %s", url)
            try:
                await page.goto(url, wait_until=self.wait_until, timeout=self.timeout_ms)
            except PlaywrightTimeout as e:
                raise RenderTimeout(url, f"navigation exceeded {self.timeout_ms} ms") from e
            except PlaywrightError as e:
                raise RenderError(url, str(e).splitlines()[0]) from e

            if self.settle_seconds:
                await asyncio.sleep(self.settle_seconds)
            yield PlaywrightDocument(page, url)
        finally:
            try:
                await context.close()
            except PlaywrightError as e:
                logger.debug("Closing browser context for %s failed: %s", url, e)
