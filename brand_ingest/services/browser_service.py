"""
Headless browser resource manager.

Owns the single long-lived Chromium process and hands out short-lived page
handles through a scoped acquisition that always closes the page.

Features:
    - Lazy launch on first use
    - Age-based restart (bounds renderer memory growth)
    - Fixed user agent, viewport and per-page timeouts
    - Request filter: media aborted, images always allowed, private hosts blocked
    - ``navigator.webdriver`` masking

Example:
    >>> manager = BrowserManager()
    >>> async with manager.page(timeout_ms=8000) as page:
    ...     await page.goto("https://example.com")
    >>> await manager.close()
"""

import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from playwright.async_api import Browser, BrowserContext, Page, Route, Request, async_playwright
from playwright.async_api import Error as PlaywrightError

from brand_ingest.config.settings import Settings, get_settings
from brand_ingest.utils.logger import get_logger
from brand_ingest.utils.url_guard import is_public_url

logger = get_logger(__name__)


# =============================================================================
# Constants
# =============================================================================

LAUNCH_ARGS = [
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-gpu",
    "--no-first-run",
    "--no-zygote",
    "--disable-extensions",
    "--disable-background-networking",
    "--disable-blink-features=AutomationControlled",
]

BLOCKED_RESOURCE_TYPES = frozenset({"media"})
MEDIA_EXTENSIONS = (".mp4", ".webm", ".mp3", ".wav", ".ogg", ".m4a", ".mov")

HIDE_WEBDRIVER_SCRIPT = "Object.defineProperty(navigator, 'webdriver', { get: () => undefined });"

Launcher = Callable[[Settings], Awaitable[tuple[Any, Browser]]]


async def launch_chromium(settings: Settings) -> tuple[Any, Browser]:
    """Start the Playwright driver and launch headless Chromium."""
    playwright = await async_playwright().start()
    try:
        browser = await playwright.chromium.launch(
            headless=settings.browser_headless,
            args=LAUNCH_ARGS,
            executable_path=settings.browser_executable_path or None,
        )
    except PlaywrightError:
        await playwright.stop()
        raise
    return playwright, browser


def should_block_request(url: str, resource_type: str) -> bool:
    """
    Whether a sub-request is aborted.

    Heavy media is dropped. Images are always allowed since extraction
    needs them. Any http(s) request to a non-public host is dropped.
    """
    lowered = url.lower().split("?", 1)[0]
    if resource_type in BLOCKED_RESOURCE_TYPES or lowered.endswith(MEDIA_EXTENSIONS):
        return True
    if lowered.startswith(("http://", "https://")) and not is_public_url(url):
        return True
    return False


# =============================================================================
# Browser Manager
# =============================================================================

class BrowserManager:
    """
    Single-browser resource manager injected into the pipeline.

    Concurrent callers may race on the restart decision; the worst case is a
    second launch whose loser is closed on its own next restart check.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        launcher: Optional[Launcher] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or get_settings()
        self._launcher = launcher or launch_chromium
        self._clock = clock
        self._playwright: Any = None
        self._browser: Optional[Browser] = None
        self._launched_at: float = 0.0
        self.launch_count = 0

    async def __aenter__(self) -> "BrowserManager":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def is_running(self) -> bool:
        return self._browser is not None

    def _is_stale(self) -> bool:
        age = self._clock() - self._launched_at
        return age >= self.settings.browser_restart_seconds

    async def get_browser(self) -> Browser:
        """Return the live browser, (re)launching it when missing, disconnected or too old."""
        if self._browser is not None:
            if self._is_stale():
                logger.info("Restarting browser", age_seconds=round(self._clock() - self._launched_at, 1))
                await self.close()
            elif not self._browser.is_connected():
                logger.warning("Browser disconnected, relaunching")
                await self.close()

        if self._browser is None:
            self._playwright, self._browser = await self._launcher(self.settings)
            self._launched_at = self._clock()
            self.launch_count += 1
            logger.debug("Browser launched", launch_count=self.launch_count)
        return self._browser

    async def new_page(self, timeout_ms: Optional[int] = None) -> Page:
        """
        Open a configured page. The caller owns it and must close it;
        prefer the ``page()`` context manager.
        """
        browser = await self.get_browser()
        context: BrowserContext = await browser.new_context(
            user_agent=self.settings.user_agent,
            viewport={"width": self.settings.viewport_width, "height": self.settings.viewport_height},
            java_script_enabled=True,
        )
        try:
            timeout = timeout_ms or self.settings.navigation_timeout_ms
            context.set_default_timeout(timeout)
            context.set_default_navigation_timeout(timeout)
            await context.add_init_script(HIDE_WEBDRIVER_SCRIPT)
            await context.route("**/*", self._route_request)
            return await context.new_page()
        except PlaywrightError:
            await context.close()
            raise

    @asynccontextmanager
    async def page(self, timeout_ms: Optional[int] = None) -> AsyncIterator[Page]:
        """Scoped page acquisition; the page and its context close on every exit path."""
        page = await self.new_page(timeout_ms)
        try:
            yield page
        finally:
            await self.close_page(page)

    @staticmethod
    async def close_page(page: Page) -> None:
        """Close a page and its context, logging rather than raising on failure."""
        try:
            await page.context.close()
        except PlaywrightError as e:
            logger.warning("Failed to close page", error=str(e))

    @staticmethod
    async def _route_request(route: Route, request: Request) -> None:
        if should_block_request(request.url, request.resource_type):
            await route.abort()
        else:
            await route.continue_()

    async def close(self) -> None:
        """Close the browser and driver; the next acquire relaunches."""
        browser, playwright = self._browser, self._playwright
        self._browser = None
        self._playwright = None
        try:
            if browser is not None:
                await browser.close()
        except PlaywrightError as e:
            logger.warning("Error closing browser", error=str(e))
        finally:
            if playwright is not None:
                try:
                    await playwright.stop()
                except PlaywrightError as e:
                    logger.warning("Error stopping playwright", error=str(e))
